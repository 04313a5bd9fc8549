"""
Observability components.

Structured logging setup and recovery counters. Counters live on an explicit
``RecoveryMetrics`` instance handed to the orchestrator, never on the module.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict

import structlog


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=log_level)
    logging.getLogger().setLevel(log_level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False) if log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class RecoveryMetrics:
    def __init__(self):
        self.recovery_total = 0
        self.success_total = 0
        self.retry_total = 0
        self.records_total = 0
        self.stage_counts: Dict[str, int] = defaultdict(int)
        self.failure_counts: Dict[str, int] = defaultdict(int)
        self.updated_at = datetime.now(timezone.utc).isoformat()

    def record_retry(self) -> None:
        self.retry_total += 1
        self.updated_at = datetime.now(timezone.utc).isoformat()

    def record_outcome(self, outcome: Any) -> None:
        self.recovery_total += 1
        if outcome.ok:
            self.success_total += 1
            self.records_total += len(outcome.records)
            self.stage_counts[outcome.stage.value] += 1
        else:
            self.failure_counts[outcome.reason.value] += 1
        self.updated_at = datetime.now(timezone.utc).isoformat()

    def snapshot(self) -> Dict[str, Any]:
        success_rate = (self.success_total / self.recovery_total) if self.recovery_total else 0.0
        retry_rate = (self.retry_total / self.recovery_total) if self.recovery_total else 0.0
        return {
            "recovery_total": self.recovery_total,
            "success_total": self.success_total,
            "success_rate": success_rate,
            "retry_total": self.retry_total,
            "retry_rate": retry_rate,
            "records_total": self.records_total,
            "stage_counts": dict(self.stage_counts),
            "failure_counts": dict(self.failure_counts),
            "updated_at": self.updated_at,
        }


__all__ = ["configure_logging", "RecoveryMetrics"]
