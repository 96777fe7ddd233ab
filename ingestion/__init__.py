"""Ingestion utilities for heat pump measurement exports."""

import logging
from dataclasses import dataclass, field
from typing import Dict

logger = logging.getLogger("ingestion")
if not logger.handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@dataclass
class IngestionMetrics:
    """Track ingestion statistics for measurement CSV processing."""

    csv_rows_processed: int = 0
    quality_errors: int = 0
    quality_warnings: int = 0
    extra: Dict[str, int] = field(default_factory=dict)

    def add_rows(self, count: int) -> None:
        self.csv_rows_processed += count
        logger.debug("Added %s CSV rows; total=%s", count, self.csv_rows_processed)

    def add_quality_issue(self, severity: str) -> None:
        if severity == "error":
            self.quality_errors += 1
        else:
            self.quality_warnings += 1

    def increment_extra(self, key: str, count: int = 1) -> None:
        self.extra[key] = self.extra.get(key, 0) + count
        logger.debug("Incremented %s metric by %s; total=%s", key, count, self.extra[key])


__all__ = ["IngestionMetrics", "logger"]
