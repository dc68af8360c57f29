"""
Configuration Management for UI Latency Bench

Handles environment-specific configuration loading with validation.

Environment Loading Order:
1. Check ENVIRONMENT variable (default: development)
2. Load config/.env and config/.env.{ENVIRONMENT} if present
3. Load config.yaml and deep-merge base + environment-specific sections
4. Apply environment overrides (TARGETS_PATH, OUTPUT_DIR, BENCH_TRIALS,
   BENCH_STRATEGY), then explicit overrides (CLI flags)
5. Validate and freeze into BenchSettings
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from ui_latency_bench.exceptions import ConfigurationError
from ui_latency_bench.instrumentation.observer import STRATEGIES
from ui_latency_bench.types import METRIC_FIELDS, Scenario

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ("development", "ci")

# Environment variable -> dotted config key
ENV_OVERRIDES = {
    "TARGETS_PATH": "paths.targets",
    "OUTPUT_DIR": "paths.output_dir",
    "BENCH_TRIALS": "trials",
    "BENCH_STRATEGY": "strategy",
}


# =============================================================================
# Settings
# =============================================================================


@dataclass(frozen=True)
class Timeouts:
    """Waits bounding a trial, in milliseconds."""

    trial_ms: float = 45_000
    settle_delay_ms: float = 3_000
    render_ms: float = 10_000
    send_ready_ms: float = 5_000


@dataclass(frozen=True)
class Pauses:
    """Fixed pauses between UI steps, in milliseconds."""

    after_load_ms: float = 2_000
    after_warmup_ms: float = 2_000
    after_reload_ms: float = 1_000
    between_trials_ms: float = 1_000
    before_click_ms: float = 100


@dataclass(frozen=True)
class NetworkProfile:
    """
    Emulated network conditions, applied once per page by the harness.

    Defaults approximate a 4G link: 40ms latency, 10 Mbit/s down,
    5 Mbit/s up.
    """

    latency_ms: float = 40
    download_bytes_per_s: float = 10e6 / 8
    upload_bytes_per_s: float = 5e6 / 8
    connection_type: str = "cellular4g"
    offline: bool = False


@dataclass(frozen=True)
class BrowserOptions:
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 800
    ignore_https_errors: bool = True


@dataclass(frozen=True)
class TrialClass:
    """
    A named scenario variant (e.g. simple vs. complex query).

    Attributes:
        id: Short identifier used in artifact names ("P1")
        name: Human readable name ("Simple query")
        prompt: Text typed into the chat input
        limits: Sanity limits checked against the summary means
        report_fields: Fields shown for this class in the results table
    """

    id: str
    name: str
    prompt: str
    limits: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    report_fields: tuple[str, ...] = METRIC_FIELDS


@dataclass(frozen=True)
class BenchSettings:
    environment: str
    trials: int
    strategy: str
    label: str
    targets_path: Path
    output_dir: Path
    timeouts: Timeouts
    pauses: Pauses
    network: NetworkProfile
    browser: BrowserOptions
    trial_classes: tuple[TrialClass, ...]


# =============================================================================
# Loading
# =============================================================================


def get_project_root() -> Path:
    """
    Get the project root directory.

    Returns:
        Path to project root (parent of ui_latency_bench directory)
    """
    return Path(__file__).parent.parent


def load_environment(config_path: str | Path | None = None) -> dict[str, Any]:
    """
    Load environment-specific configuration as a merged dict.

    Args:
        config_path: Explicit config.yaml; defaults to BENCH_CONFIG or
            config/config.yaml under the project root

    Returns:
        dict: Merged configuration (base + environment-specific)

    Raises:
        ConfigurationError: If ENVIRONMENT is invalid or the config is unreadable
    """
    environment = os.getenv("ENVIRONMENT", "development")
    if environment not in VALID_ENVIRONMENTS:
        raise ConfigurationError(
            f"Invalid ENVIRONMENT value: '{environment}'. "
            f"Must be one of: {', '.join(VALID_ENVIRONMENTS)}"
        )

    config_dir = get_project_root() / "config"
    for env_file in (config_dir / ".env", config_dir / f".env.{environment}"):
        if env_file.exists():
            load_dotenv(env_file)
            logger.info(f"Loaded environment variables from: {env_file}")

    if config_path is None:
        config_path = os.getenv("BENCH_CONFIG") or config_dir / "config.yaml"
    config_file = Path(config_path)

    if not config_file.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_file}\n"
            "Expected location: config/config.yaml (or set BENCH_CONFIG)"
        )

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    base_config = config_data.get("base", {})
    env_config = config_data.get(environment) or {}

    merged_config = _deep_merge(base_config, env_config)
    merged_config["environment"] = environment

    logger.info(f"Loaded configuration from: {config_file}")
    logger.info(f"Active environment: {environment}")

    return merged_config


def load_settings(
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> BenchSettings:
    """
    Load, override and validate settings.

    Args:
        config_path: Explicit config.yaml path
        overrides: Dotted keys -> values applied last (CLI flags); None
            values are ignored

    Raises:
        ConfigurationError: If any value is missing or invalid
    """
    config = load_environment(config_path)

    for env_var, key in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            _set_dotted(config, key, value)

    for key, value in (overrides or {}).items():
        if value is not None:
            _set_dotted(config, key, value)

    return parse_settings(config)


def parse_settings(config: Mapping[str, Any]) -> BenchSettings:
    """Validate a merged config dict into BenchSettings."""
    try:
        trials = int(config.get("trials", 3))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"trials must be an integer: {e}") from e
    if trials < 1:
        raise ConfigurationError(f"trials must be >= 1, got {trials}")

    strategy = str(config.get("strategy", "out_of_page"))
    if strategy not in STRATEGIES:
        raise ConfigurationError(
            f"Invalid strategy '{strategy}'. Must be one of: {', '.join(STRATEGIES)}"
        )

    paths = config.get("paths") or {}
    trial_classes = tuple(_parse_trial_class(tc) for tc in config.get("trial_classes") or ())
    if not trial_classes:
        raise ConfigurationError("At least one trial class must be configured")

    ids = [tc.id for tc in trial_classes]
    if len(set(ids)) != len(ids):
        raise ConfigurationError(f"Duplicate trial class ids: {ids}")

    return BenchSettings(
        environment=str(config.get("environment", "development")),
        trials=trials,
        strategy=strategy,
        label=str(config.get("label", "chat")),
        targets_path=Path(paths.get("targets", "targets.json")),
        output_dir=Path(paths.get("output_dir", "artifacts")),
        timeouts=_section(Timeouts, config.get("timeouts")),
        pauses=_section(Pauses, config.get("pauses")),
        network=_section(NetworkProfile, config.get("network")),
        browser=_section(BrowserOptions, config.get("browser")),
        trial_classes=trial_classes,
    )


def load_scenarios(path: str | Path) -> list[Scenario]:
    """
    Load the ordered scenario list from a JSON or YAML targets file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    targets_file = Path(path)
    if not targets_file.exists():
        raise ConfigurationError(f"Targets file not found: {targets_file}")

    try:
        with open(targets_file, "r", encoding="utf-8") as f:
            if targets_file.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not parse targets file {targets_file}: {e}") from e

    if not isinstance(data, list):
        raise ConfigurationError(f"Targets file must contain a list, got {type(data).__name__}")

    scenarios = [Scenario.from_dict(entry) for entry in data]

    names = [s.name for s in scenarios]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Duplicate scenario names in {targets_file}")

    logger.info(f"Loaded {len(scenarios)} scenarios from {targets_file}")
    return scenarios


# =============================================================================
# Helpers
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries. Override values take precedence.

    Args:
        base: Base dictionary
        override: Override dictionary (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _set_dotted(config: dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = key.split(".")
    node = config
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def _section(cls: type, data: Mapping[str, Any] | None) -> Any:
    data = dict(data or {})
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid {cls.__name__} section: {e}") from e


def _parse_trial_class(data: Mapping[str, Any]) -> TrialClass:
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Trial class must be a mapping, got {type(data).__name__}")

    missing = [key for key in ("id", "name", "prompt") if not data.get(key)]
    if missing:
        raise ConfigurationError(f"Trial class is missing: {', '.join(missing)}")

    class_id = str(data["id"])
    # Artifact names are "<scenario>-<class id>"
    if not class_id.isalnum():
        raise ConfigurationError(f"Trial class id must be alphanumeric, got '{class_id}'")

    limits = data.get("limits") or {}
    report_fields = tuple(data.get("report_fields") or METRIC_FIELDS)
    for name in list(limits) + list(report_fields):
        if name not in METRIC_FIELDS:
            raise ConfigurationError(f"Trial class {class_id}: unknown metric field '{name}'")

    return TrialClass(
        id=class_id,
        name=str(data["name"]),
        prompt=str(data["prompt"]),
        limits=limits,
        report_fields=report_fields,
    )
