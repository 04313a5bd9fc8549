"""Value types shared by the recovery stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from casegen.models.testcase import TestCase

DEFAULT_RETRY_INSTRUCTION = (
    "Your previous response was not valid JSON. Please ensure you return ONLY valid JSON "
    "matching the schema, with no additional text or markdown formatting."
)
EXHAUSTED_MESSAGE = "Failed to generate valid test cases after retry. Please try again."


class Stage(str, Enum):
    DIRECT = "direct"
    REPAIR = "repair"
    SALVAGE = "salvage"
    EXHAUSTED = "exhausted"


class FailureReason(str, Enum):
    NO_CANDIDATE_FOUND = "no_candidate_found"
    STRUCTURALLY_IRREPARABLE = "structurally_irreparable"
    SCHEMA_REJECTED_ALL = "schema_rejected_all"
    EXHAUSTED_AFTER_RETRY = "exhausted_after_retry"


@dataclass(frozen=True)
class RecoveryOptions:
    records_key: str = "testCases"
    string_anchor_window: int = 50
    preview_chars: int = 500
    error_context_chars: int = 100
    retry_instruction: str = DEFAULT_RETRY_INSTRUCTION


@dataclass(frozen=True)
class CandidateSpan:
    """Half-open ``[start, end)`` range into ``source`` bounding one JSON value."""

    source: str
    start: int
    end: int
    truncated: bool = False

    @property
    def text(self) -> str:
        return self.source[self.start : self.end]

    @property
    def kind(self) -> str:
        return "object" if self.source[self.start] == "{" else "array"


@dataclass
class StageDiagnostic:
    stage: Stage
    detail: str
    attempt: int = 1
    position: Optional[int] = None
    context: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "detail": self.detail,
            "attempt": self.attempt,
            "position": self.position,
            "context": self.context,
        }


class RecoveryFailedError(RuntimeError):
    """Raised on request when recovery ends in a failure."""

    def __init__(self, reason: FailureReason, message: str):
        super().__init__(message)
        self.reason = reason


@dataclass
class RecoverySuccess:
    records: List[TestCase]
    stage: Stage
    retried: bool = False
    rejected: int = 0

    ok = True

    def to_payload(self) -> List[Dict[str, Any]]:
        return [record.to_payload() for record in self.records]


@dataclass
class RecoveryFailure:
    reason: FailureReason
    message: str = ""
    diagnostics: List[StageDiagnostic] = field(default_factory=list)

    ok = False

    def raise_for_failure(self) -> None:
        raise RecoveryFailedError(self.reason, self.message or self.reason.value)


RecoveryOutcome = Union[RecoverySuccess, RecoveryFailure]


__all__ = [
    "DEFAULT_RETRY_INSTRUCTION",
    "EXHAUSTED_MESSAGE",
    "Stage",
    "FailureReason",
    "RecoveryOptions",
    "CandidateSpan",
    "StageDiagnostic",
    "RecoveryFailedError",
    "RecoverySuccess",
    "RecoveryFailure",
    "RecoveryOutcome",
]
