"""Validate loosely-typed objects against the test case schema."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from casegen.models.testcase import TestCase

logger = structlog.get_logger()


@dataclass
class RejectedEntry:
    index: int
    record_id: Optional[str]
    errors: List[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    records: List[TestCase] = field(default_factory=list)
    rejected: List[RejectedEntry] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records) + len(self.rejected)

    @property
    def all_valid(self) -> bool:
        return bool(self.records) and not self.rejected


def coerce_record_list(value: Any, records_key: str = "testCases") -> List[Any]:
    """Accept a bare array, an object wrapping the records key, or a single record."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        if records_key in value:
            items = value[records_key]
            return items if isinstance(items, list) else []
        return [value]
    return []


def _format_errors(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return messages


def validate_records(items: Sequence[Any]) -> ValidationReport:
    report = ValidationReport()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            report.rejected.append(RejectedEntry(index=index, record_id=None, errors=["not an object"]))
            continue
        try:
            report.records.append(TestCase.model_validate(item))
        except ValidationError as exc:
            record_id = item.get("id")
            report.rejected.append(
                RejectedEntry(
                    index=index,
                    record_id=record_id if isinstance(record_id, str) else None,
                    errors=_format_errors(exc),
                )
            )
    if report.rejected:
        logger.warning(
            "test_case_validation_rejected",
            accepted=len(report.records),
            rejected=len(report.rejected),
            rejected_ids=[entry.record_id for entry in report.rejected],
        )
    return report


__all__ = ["RejectedEntry", "ValidationReport", "coerce_record_list", "validate_records"]
