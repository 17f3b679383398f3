"""
Core Package.

This package contains the live ingestion logic, separated from the web
layer: dedup ledger, ingestion worker pool, history feed, monitor
scheduler and the pipeline that wires them together.

ARCHITECTURE RULES:
- core/ modules may only import from:
  - Python standard library
  - archive/, detectors/, storage/ (adapters and interfaces)
  - config and logging_config

- core/ modules MUST NOT import from:
  - web/ (no Flask dependencies)
"""

__all__ = [
    "dedup_ledger",
    "exceptions",
    "history_feed",
    "ingestion_pool",
    "live_monitoring",
    "monitor_scheduler",
]
