"""
Result artifacts.

One JSON file per (scenario, trial class), named "<scenario>-<class id>.json",
holding the flat SummaryStatistic fields. Writing the same key again
overwrites the previous artifact.

After a run, every artifact in the output directory is combined into:
- results.json: rows of {"name": scenario, "<class id>": summary, ...}
- results.md: Markdown table with one column per (class, report field)
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from ui_latency_bench.config import TrialClass
from ui_latency_bench.types import SummaryStatistic

logger = logging.getLogger(__name__)

RESULTS_JSON = "results.json"
RESULTS_MD = "results.md"

# Short column labels for the results table
FIELD_LABELS = {
    "ttfb_ms": "ttfb",
    "ttft_ms": "ttft",
    "ttl_ms": "ttl",
    "render_ms": "render",
    "bytes_total": "bytes",
}


class ArtifactStore:
    """Reads and writes per-scenario summary artifacts in one directory."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, scenario: str, trial_class: str) -> Path:
        return self.output_dir / f"{scenario}-{trial_class}.json"

    def write(self, scenario: str, trial_class: str, summary: SummaryStatistic) -> Path:
        """Persist a summary, replacing any artifact with the same key."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(scenario, trial_class)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(summary.to_dict(), f, indent=2)

        logger.info(f"Results saved to: {path}")
        return path

    def read(self, scenario: str, trial_class: str) -> SummaryStatistic:
        with open(self.path_for(scenario, trial_class), "r", encoding="utf-8") as f:
            return SummaryStatistic.from_dict(json.load(f))

    def load_all(self) -> list[dict[str, Any]]:
        """
        Load every artifact as result rows, one per scenario.

        Class ids contain no "-", so the last "-" splits scenario from class.
        Each artifact is read back as a SummaryStatistic, so missing fields
        come out as -1; artifacts that do not parse are skipped.

        Returns:
            Rows like {"name": "chat-ui", "P1": {...}, "P2": {...}}
        """
        if not self.output_dir.exists():
            return []

        rows: dict[str, dict[str, Any]] = {}

        for path in sorted(self.output_dir.glob("*.json")):
            if path.name == RESULTS_JSON or "-" not in path.stem:
                continue

            name, trial_class = path.stem.rsplit("-", 1)
            try:
                summary = self.read(name, trial_class)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping unreadable artifact {path}: {e}")
                continue

            row = rows.setdefault(name, {"name": name})
            row[trial_class] = summary.to_dict()

        return list(rows.values())


def render_table(rows: Sequence[dict[str, Any]], trial_classes: Sequence[TrialClass]) -> str:
    """
    Render result rows as a Markdown table.

    Args:
        rows: Rows from ArtifactStore.load_all()
        trial_classes: Classes (and their report fields) to show as columns

    Returns:
        Markdown document
    """
    columns = [(tc.id, field) for tc in trial_classes for field in tc.report_fields]

    md = "# UI Latency Bench Results\n\n"
    md += f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n"
    md += "| UI | " + " | ".join(f"{cls} {FIELD_LABELS[field]}" for cls, field in columns) + " |\n"
    md += "|---|" + "---:|" * len(columns) + "\n"

    for row in rows:
        cells = []
        for cls, field in columns:
            value = (row.get(cls) or {}).get(field)
            cells.append("" if value is None else str(value))
        md += f"| {row['name']} | " + " | ".join(cells) + " |\n"

    return md


def write_results_table(store: ArtifactStore, trial_classes: Sequence[TrialClass]) -> str:
    """Aggregate all artifacts into results.json and results.md; returns the Markdown."""
    rows = store.load_all()
    md = render_table(rows, trial_classes)

    store.output_dir.mkdir(parents=True, exist_ok=True)
    with open(store.output_dir / RESULTS_JSON, "w", encoding="utf-8") as f:
        json.dump(rows, f, indent=2)
    with open(store.output_dir / RESULTS_MD, "w", encoding="utf-8") as f:
        f.write(md)

    logger.info(f"Report generated: {store.output_dir / RESULTS_MD} ({len(rows)} scenarios)")
    return md
