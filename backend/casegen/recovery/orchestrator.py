"""Recovery orchestrator.

Runs ``Direct -> Repair -> Salvage -> Exhausted`` over one model response and,
when the first attempt is exhausted, asks the caller for exactly one retried
response before giving up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import structlog

from casegen.core.json_utils import error_context, parse_json
from casegen.core.observability import RecoveryMetrics
from casegen.recovery.extractor import extract_candidate
from casegen.recovery.repairer import repair_json
from casegen.recovery.salvager import salvage_records
from casegen.recovery.types import (
    EXHAUSTED_MESSAGE,
    FailureReason,
    RecoveryFailure,
    RecoveryOptions,
    RecoveryOutcome,
    RecoverySuccess,
    Stage,
    StageDiagnostic,
)
from casegen.recovery.validator import ValidationReport, coerce_record_list, validate_records

logger = structlog.get_logger()

RetryCallback = Callable[[str], str]
AsyncRetryCallback = Callable[[str], Awaitable[str]]


@dataclass
class AttemptResult:
    attempt: int
    success: Optional[RecoverySuccess] = None
    reason: Optional[FailureReason] = None
    diagnostics: List[StageDiagnostic] = field(default_factory=list)


class RecoveryOrchestrator:
    """Single place for stage sequencing, acceptance policy and the retry bound."""

    def __init__(
        self,
        options: Optional[RecoveryOptions] = None,
        metrics: Optional[RecoveryMetrics] = None,
    ):
        self.options = options or RecoveryOptions()
        self.metrics = metrics

    def run_attempt(self, raw_text: str, attempt: int = 1) -> AttemptResult:
        options = self.options
        result = AttemptResult(attempt=attempt)
        raw_text = raw_text or ""

        span = extract_candidate(raw_text)
        if span is None:
            logger.info(
                "recovery_no_candidate",
                attempt=attempt,
                preview=raw_text[: options.preview_chars],
            )
            result.reason = FailureReason.NO_CANDIDATE_FOUND
            result.diagnostics.append(
                StageDiagnostic(Stage.DIRECT, "no JSON object or array in response", attempt)
            )
            return result

        text = span.text
        logger.debug(
            "recovery_candidate_extracted",
            attempt=attempt,
            kind=span.kind,
            truncated=span.truncated,
            length=len(text),
            preview=text[: options.preview_chars],
        )

        # Direct
        parsed, error = parse_json(text)
        if error is None:
            report = validate_records(coerce_record_list(parsed, options.records_key))
            if report.records:
                return self._accept(result, Stage.DIRECT, report)
            result.reason = FailureReason.SCHEMA_REJECTED_ALL
            result.diagnostics.append(self._rejection_diagnostic(Stage.DIRECT, report, attempt))
            return result
        result.diagnostics.append(self._parse_diagnostic(text, error, attempt))

        # Repair
        saw_objects = False
        provisional: Optional[ValidationReport] = None
        repair = repair_json(text, anchor_window=options.string_anchor_window, records_key=options.records_key)
        if repair.ok:
            report = validate_records(coerce_record_list(repair.value, options.records_key))
            saw_objects = report.total > 0
            closed_tail = span.truncated or repair.closed_string
            if report.all_valid and not closed_tail:
                return self._accept(result, Stage.REPAIR, report)
            # a record closed at the cut would take defaults for its missing fields
            if report.records and (repair.from_fragments or not closed_tail):
                provisional = report
            result.diagnostics.append(
                StageDiagnostic(
                    Stage.REPAIR,
                    f"repair not trusted (truncated={span.truncated}, closed_string={repair.closed_string}, "
                    f"accepted={len(report.records)}, rejected={len(report.rejected)})",
                    attempt,
                )
            )
        else:
            result.diagnostics.append(StageDiagnostic(Stage.REPAIR, f"irreparable: {repair.error}", attempt))

        # Salvage
        salvage = salvage_records(text, records_key=options.records_key)
        report = validate_records(salvage.records)
        if report.records:
            return self._accept(result, Stage.SALVAGE, report)
        saw_objects = saw_objects or salvage.incomplete > 0 or report.total > 0
        result.diagnostics.append(
            StageDiagnostic(
                Stage.SALVAGE,
                f"no valid records (unparseable={salvage.unparseable}, incomplete={salvage.incomplete}, "
                f"rejected={len(report.rejected)})",
                attempt,
            )
        )

        if provisional is not None:
            # partial success beats total failure
            return self._accept(result, Stage.REPAIR, provisional)

        result.reason = (
            FailureReason.SCHEMA_REJECTED_ALL if saw_objects else FailureReason.STRUCTURALLY_IRREPARABLE
        )
        logger.warning(
            "recovery_attempt_exhausted",
            attempt=attempt,
            reason=result.reason.value,
            diagnostics=[d.as_dict() for d in result.diagnostics],
        )
        return result

    def recover(self, raw_text: str, retry_callback: Optional[RetryCallback] = None) -> RecoveryOutcome:
        first = self.run_attempt(raw_text, attempt=1)
        if first.success is not None or not self._should_retry(first, retry_callback):
            return self._finish(first)
        self._note_retry(first)
        try:
            retry_text = retry_callback(self.options.retry_instruction)
        except Exception as exc:
            return self._retry_failed(first, exc)
        return self._conclude(first, retry_text)

    async def recover_async(
        self,
        raw_text: str,
        retry_callback: Optional[AsyncRetryCallback] = None,
    ) -> RecoveryOutcome:
        first = self.run_attempt(raw_text, attempt=1)
        if first.success is not None or not self._should_retry(first, retry_callback):
            return self._finish(first)
        self._note_retry(first)
        try:
            retry_text = await retry_callback(self.options.retry_instruction)
        except Exception as exc:
            return self._retry_failed(first, exc)
        return self._conclude(first, retry_text)

    @staticmethod
    def _should_retry(first: AttemptResult, retry_callback: Optional[Callable[..., object]]) -> bool:
        return retry_callback is not None and first.reason is not FailureReason.NO_CANDIDATE_FOUND

    def _note_retry(self, first: AttemptResult) -> None:
        logger.info("recovery_retry_requested", reason=first.reason.value if first.reason else "")
        if self.metrics is not None:
            self.metrics.record_retry()

    def _conclude(self, first: AttemptResult, retry_text: str) -> RecoveryOutcome:
        second = self.run_attempt(retry_text or "", attempt=2)
        if second.success is not None:
            second.success.retried = True
            return self._finish(second)
        return self._finish(
            AttemptResult(
                attempt=2,
                reason=FailureReason.EXHAUSTED_AFTER_RETRY,
                diagnostics=first.diagnostics + second.diagnostics,
            )
        )

    def _retry_failed(self, first: AttemptResult, exc: Exception) -> RecoveryOutcome:
        error_text = str(exc).strip() or exc.__class__.__name__
        logger.error("recovery_retry_callback_failed", error=error_text)
        diagnostics = first.diagnostics + [
            StageDiagnostic(Stage.EXHAUSTED, f"retry callback failed: {error_text}", attempt=2)
        ]
        return self._finish(
            AttemptResult(attempt=2, reason=FailureReason.EXHAUSTED_AFTER_RETRY, diagnostics=diagnostics)
        )

    def _finish(self, result: AttemptResult) -> RecoveryOutcome:
        outcome: RecoveryOutcome
        if result.success is not None:
            outcome = result.success
            logger.info(
                "recovery_succeeded",
                stage=outcome.stage.value,
                records=len(outcome.records),
                rejected=outcome.rejected,
                retried=outcome.retried,
            )
        else:
            reason = result.reason or FailureReason.STRUCTURALLY_IRREPARABLE
            message = EXHAUSTED_MESSAGE if reason is FailureReason.EXHAUSTED_AFTER_RETRY else ""
            outcome = RecoveryFailure(reason=reason, message=message, diagnostics=result.diagnostics)
            logger.warning("recovery_failed", reason=reason.value, attempts=result.attempt)
        if self.metrics is not None:
            self.metrics.record_outcome(outcome)
        return outcome

    @staticmethod
    def _accept(result: AttemptResult, stage: Stage, report: ValidationReport) -> AttemptResult:
        result.success = RecoverySuccess(records=report.records, stage=stage, rejected=len(report.rejected))
        return result

    def _parse_diagnostic(self, text: str, error: ValueError, attempt: int) -> StageDiagnostic:
        position = getattr(error, "pos", None)
        context = error_context(text, position, self.options.error_context_chars) if position is not None else ""
        logger.info("recovery_direct_parse_failed", attempt=attempt, error=str(error), position=position)
        return StageDiagnostic(Stage.DIRECT, str(error), attempt, position=position, context=context)

    @staticmethod
    def _rejection_diagnostic(stage: Stage, report: ValidationReport, attempt: int) -> StageDiagnostic:
        if not report.total:
            return StageDiagnostic(stage, "no test cases in response", attempt)
        errors = "; ".join(
            f"#{entry.index} ({entry.record_id or '?'}): {', '.join(entry.errors)}" for entry in report.rejected
        )
        return StageDiagnostic(stage, f"all {report.total} entries rejected: {errors}", attempt)


def recover(
    raw_text: str,
    retry_callback: Optional[RetryCallback] = None,
    *,
    options: Optional[RecoveryOptions] = None,
    metrics: Optional[RecoveryMetrics] = None,
) -> RecoveryOutcome:
    return RecoveryOrchestrator(options, metrics).recover(raw_text, retry_callback)


async def recover_async(
    raw_text: str,
    retry_callback: Optional[AsyncRetryCallback] = None,
    *,
    options: Optional[RecoveryOptions] = None,
    metrics: Optional[RecoveryMetrics] = None,
) -> RecoveryOutcome:
    return await RecoveryOrchestrator(options, metrics).recover_async(raw_text, retry_callback)


__all__ = [
    "AttemptResult",
    "RetryCallback",
    "AsyncRetryCallback",
    "RecoveryOrchestrator",
    "recover",
    "recover_async",
]
