"""
Test case generation service.

Builds the prompt, calls the configured text generator and hands the raw
response to the recovery pipeline. The generator is called at most twice.
"""

from __future__ import annotations

from time import perf_counter
from typing import Optional, Protocol

import structlog

from casegen.config import Settings, get_settings
from casegen.core.observability import RecoveryMetrics, configure_logging
from casegen.models.generation import GenerateRequest
from casegen.recovery.orchestrator import RecoveryOrchestrator
from casegen.recovery.types import FailureReason, RecoveryOptions, RecoverySuccess
from casegen.services.prompt_builder import build_prompt, build_retry_prompt

logger = structlog.get_logger()

GENERIC_FAILURE_MESSAGE = "Failed to generate valid test cases. Please try again."


class TextGenerator(Protocol):
    """Upstream model client; provider-specific clients live outside this package."""

    async def generate(self, prompt: str) -> str:
        ...


class TestCaseGenerationError(RuntimeError):
    """Generation ended without a usable batch; ``str(exc)`` is safe to show to users."""

    __test__ = False

    def __init__(self, message: str, reason: FailureReason):
        super().__init__(message)
        self.reason = reason


class TestCaseGenerationService:
    __test__ = False

    def __init__(
        self,
        generator: TextGenerator,
        *,
        provider: str = "",
        options: Optional[RecoveryOptions] = None,
        metrics: Optional[RecoveryMetrics] = None,
    ):
        self._generator = generator
        self._provider = provider
        self._orchestrator = RecoveryOrchestrator(options, metrics)

    async def generate(self, request: GenerateRequest) -> RecoverySuccess:
        prompt = build_prompt(request)
        started = perf_counter()
        logger.info(
            "testcase_generation_started",
            issue_key=request.issue_key,
            provider=self._provider,
            requirements=len(request.requirements or []),
        )

        raw_text = await self._generator.generate(prompt)

        async def _retry(instruction: str) -> str:
            return await self._generator.generate(build_retry_prompt(prompt, instruction))

        outcome = await self._orchestrator.recover_async(raw_text, _retry)
        latency_ms = int((perf_counter() - started) * 1000)
        if not outcome.ok:
            logger.error(
                "testcase_generation_failed",
                issue_key=request.issue_key,
                provider=self._provider,
                reason=outcome.reason.value,
                latency_ms=latency_ms,
                diagnostics=[d.as_dict() for d in outcome.diagnostics],
            )
            raise TestCaseGenerationError(outcome.message or GENERIC_FAILURE_MESSAGE, outcome.reason)

        logger.info(
            "testcase_generation_completed",
            issue_key=request.issue_key,
            provider=self._provider,
            stage=outcome.stage.value,
            test_cases=len(outcome.records),
            retried=outcome.retried,
            latency_ms=latency_ms,
        )
        return outcome


def create_generation_service(
    generator: TextGenerator,
    *,
    settings: Optional[Settings] = None,
    metrics: Optional[RecoveryMetrics] = None,
) -> TestCaseGenerationService:
    """Configure logging from settings and build a service for the selected provider."""
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger.info(
        "testcase_generation_service_ready",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        provider=settings.LLM_PROVIDER,
    )
    return TestCaseGenerationService(
        generator,
        provider=settings.LLM_PROVIDER,
        options=settings.recovery_options,
        metrics=metrics,
    )


__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "TextGenerator",
    "TestCaseGenerationError",
    "TestCaseGenerationService",
    "create_generation_service",
]
