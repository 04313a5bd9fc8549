"""
Recovery pipeline for model-generated test case JSON.

Extractor -> Repairer -> Salvager -> Validator, sequenced by the orchestrator.
"""

from casegen.recovery.orchestrator import RecoveryOrchestrator, recover, recover_async
from casegen.recovery.types import (
    CandidateSpan,
    FailureReason,
    RecoveryFailedError,
    RecoveryFailure,
    RecoveryOptions,
    RecoveryOutcome,
    RecoverySuccess,
    Stage,
    StageDiagnostic,
)

__all__ = [
    "RecoveryOrchestrator",
    "recover",
    "recover_async",
    "CandidateSpan",
    "FailureReason",
    "RecoveryFailedError",
    "RecoveryFailure",
    "RecoveryOptions",
    "RecoveryOutcome",
    "RecoverySuccess",
    "Stage",
    "StageDiagnostic",
]
