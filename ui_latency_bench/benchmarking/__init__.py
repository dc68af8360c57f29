"""
Benchmarking Module for UI Latency Measurement.

Runs warmup and measured trials per scenario and trial class, persists one
summary artifact per pair and aggregates them into a results table.
"""
