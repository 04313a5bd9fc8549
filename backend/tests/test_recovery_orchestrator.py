"""
Tests for the recovery orchestrator: stage sequencing, acceptance and the retry bound.
"""

import json

import pytest

from casegen.core.observability import RecoveryMetrics
from casegen.recovery import (
    FailureReason,
    RecoveryFailedError,
    RecoveryOptions,
    RecoveryOrchestrator,
    Stage,
    recover,
    recover_async,
)
from casegen.recovery.types import DEFAULT_RETRY_INSTRUCTION, EXHAUSTED_MESSAGE

TRUNCATED_SCENARIO = (
    '```json\n{"testCases":[{"id":"TC-1","title":"Login","steps":[{"id":"s1","action":"a","expectedResult":"b"}],'
    '"priority":"high"},{"id":"TC-2","title":"Log'
)


def _case(case_id, title="Login", priority="high"):
    return {
        "id": case_id,
        "title": title,
        "preconditions": "User has an account",
        "steps": [{"id": "step-1", "action": "Submit the form", "expectedResult": "Dashboard is shown"}],
        "priority": priority,
        "requirementIds": ["REQ-1"],
    }


class CountingCallback:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, instruction):
        self.calls.append(instruction)
        return self.responses.pop(0)


def test_fenced_block_with_prose_is_returned_via_direct():
    cases = [_case("TC-1"), _case("TC-2", title="Logout", priority="low")]
    raw = "Here are your test cases:\n```json\n" + json.dumps({"testCases": cases}, indent=2) + "\n```\nHope this helps!"

    outcome = recover(raw)

    assert outcome.ok
    assert outcome.stage is Stage.DIRECT
    assert outcome.to_payload() == cases
    assert not outcome.retried


def test_truncated_scenario_salvages_first_record():
    outcome = recover(TRUNCATED_SCENARIO)

    assert outcome.ok
    assert outcome.stage is Stage.SALVAGE
    assert [case.id for case in outcome.records] == ["TC-1"]
    assert outcome.records[0].steps[0].expected_result == "b"


def test_truncated_inside_last_field_never_fabricates_tail():
    tail = {
        "id": "TC-2",
        "title": "Register",
        "steps": [{"id": "s1", "action": "a", "expectedResult": "b"}],
    }
    raw = "[" + json.dumps(_case("TC-1")) + ", " + json.dumps(tail)[:-1] + ', "priority": "hi'

    outcome = recover(raw)

    assert outcome.ok
    assert outcome.to_payload() == [_case("TC-1")]


def test_broken_object_between_valid_ones_is_dropped():
    raw = (
        "["
        + json.dumps(_case("TC-1"))
        + ', {"id": "TC-2", "title": , "priority": "low"}, '
        + json.dumps(_case("TC-3", title="Logout"))
        + "]"
    )

    outcome = recover(raw)

    assert outcome.ok
    assert outcome.stage is Stage.REPAIR
    assert [case.id for case in outcome.records] == ["TC-1", "TC-3"]


def test_mismatched_closer_between_valid_records_is_salvaged():
    raw = (
        "["
        + json.dumps(_case("TC-1"))
        + ', {"id": "TC-2", "title": "Broken", "steps": [{"id": "s1", "action": "a"}}, "priority": "low"}, '
        + json.dumps(_case("TC-3", title="Logout"))
        + "]"
    )

    outcome = recover(raw)

    assert outcome.ok
    assert outcome.stage is Stage.SALVAGE
    assert [case.id for case in outcome.records] == ["TC-1", "TC-3"]


def test_single_record_truncated_in_last_field_is_not_defaulted():
    raw = (
        '[{"id": "TC-1", "title": "Login", '
        '"steps": [{"id": "s1", "action": "a", "expectedResult": "b"}], '
        '"priority": "high", "requirementIds": ["REQ-1", "REQ-2'
    )

    outcome = recover(raw)

    assert not outcome.ok
    assert outcome.reason is FailureReason.SCHEMA_REJECTED_ALL


def test_single_truncated_record_is_retried():
    callback = CountingCallback(json.dumps([_case("TC-1")]))
    raw = '[{"id": "TC-1", "title": "Login", "steps": [{"id": "s1", "action": "a", "expectedResult": "b"}], "priority": "hi'

    outcome = recover(raw, callback)

    assert outcome.ok
    assert outcome.retried
    assert outcome.records[0].priority.value == "high"
    assert len(callback.calls) == 1


def test_trailing_comma_object_is_repaired():
    case = _case("TC-1")
    raw = json.dumps(case)[:-1] + ",}"

    outcome = recover(raw)

    assert outcome.ok
    assert outcome.stage is Stage.REPAIR
    assert outcome.to_payload() == [case]


def test_direct_parse_keeps_valid_subset():
    raw = json.dumps({"testCases": [_case("TC-1"), _case("TC-2", priority="urgent")]})

    outcome = recover(raw)

    assert outcome.stage is Stage.DIRECT
    assert [case.id for case in outcome.records] == ["TC-1"]
    assert outcome.rejected == 1


def test_recover_is_idempotent():
    assert recover(TRUNCATED_SCENARIO) == recover(TRUNCATED_SCENARIO)


class TestFailures:
    def test_plain_prose_is_no_candidate_without_retry(self):
        callback = CountingCallback(json.dumps([_case("TC-1")]))

        outcome = recover("I am unable to generate test cases for this story.", callback)

        assert not outcome.ok
        assert outcome.reason is FailureReason.NO_CANDIDATE_FOUND
        assert callback.calls == []

    def test_unparseable_without_records_is_irreparable(self):
        outcome = recover('{"a": }')

        assert outcome.reason is FailureReason.STRUCTURALLY_IRREPARABLE
        assert outcome.diagnostics[0].stage is Stage.DIRECT
        assert outcome.diagnostics[0].position == 6

    def test_all_entries_invalid_is_schema_rejected(self):
        outcome = recover(json.dumps({"testCases": [_case("TC-1", priority="urgent")]}))

        assert outcome.reason is FailureReason.SCHEMA_REJECTED_ALL
        assert "TC-1" in outcome.diagnostics[-1].detail

    def test_empty_array_is_schema_rejected(self):
        assert recover('{"testCases": []}').reason is FailureReason.SCHEMA_REJECTED_ALL

    def test_raise_for_failure(self):
        outcome = recover('{"testCases": []}')

        with pytest.raises(RecoveryFailedError) as exc_info:
            outcome.raise_for_failure()
        assert exc_info.value.reason is FailureReason.SCHEMA_REJECTED_ALL


class TestRetry:
    def test_retry_succeeds_on_second_response(self):
        callback = CountingCallback("```json\n" + json.dumps([_case("TC-1")]) + "\n```")

        outcome = recover('{"testCases": []}', callback)

        assert outcome.ok
        assert outcome.retried
        assert outcome.stage is Stage.DIRECT
        assert callback.calls == [DEFAULT_RETRY_INSTRUCTION]

    def test_second_failure_is_exhausted(self):
        callback = CountingCallback('{"testCases": []}', '{"testCases": []}')

        outcome = recover('{"a": }', callback)

        assert outcome.reason is FailureReason.EXHAUSTED_AFTER_RETRY
        assert outcome.message == EXHAUSTED_MESSAGE
        assert len(callback.calls) == 1
        assert {d.attempt for d in outcome.diagnostics} == {1, 2}

    def test_retry_without_candidate_is_exhausted(self):
        callback = CountingCallback("Sorry, no JSON this time.")

        outcome = recover('{"testCases": []}', callback)

        assert outcome.reason is FailureReason.EXHAUSTED_AFTER_RETRY
        assert len(callback.calls) == 1

    def test_raising_callback_is_exhausted(self):
        def callback(instruction):
            raise ConnectionError("upstream timeout")

        outcome = recover('{"testCases": []}', callback)

        assert outcome.reason is FailureReason.EXHAUSTED_AFTER_RETRY
        assert "upstream timeout" in outcome.diagnostics[-1].detail

    def test_custom_retry_instruction(self):
        callback = CountingCallback(json.dumps([_case("TC-1")]))
        options = RecoveryOptions(retry_instruction="JSON only, please.")

        recover('{"testCases": []}', callback, options=options)

        assert callback.calls == ["JSON only, please."]


@pytest.mark.asyncio
async def test_recover_async_invokes_callback_once():
    calls = []

    async def callback(instruction):
        calls.append(instruction)
        return json.dumps({"testCases": [_case("TC-9")]})

    outcome = await recover_async('{"testCases": [{"id": "TC-1"}]}', callback)

    assert outcome.ok
    assert outcome.retried
    assert [case.id for case in outcome.records] == ["TC-9"]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_recover_async_direct_success_skips_callback():
    async def callback(instruction):
        raise AssertionError("should not retry")

    outcome = await recover_async(json.dumps([_case("TC-1")]), callback)

    assert outcome.stage is Stage.DIRECT


def test_custom_records_key():
    raw = json.dumps({"items": [_case("TC-1")]})

    outcome = RecoveryOrchestrator(RecoveryOptions(records_key="items")).recover(raw)

    assert [case.id for case in outcome.records] == ["TC-1"]


def test_metrics_are_recorded_on_the_instance():
    metrics = RecoveryMetrics()
    orchestrator = RecoveryOrchestrator(metrics=metrics)

    orchestrator.recover(TRUNCATED_SCENARIO)
    orchestrator.recover('{"testCases": []}', CountingCallback('{"testCases": []}'))
    orchestrator.recover("no json")

    snapshot = metrics.snapshot()
    assert snapshot["recovery_total"] == 3
    assert snapshot["success_total"] == 1
    assert snapshot["retry_total"] == 1
    assert snapshot["records_total"] == 1
    assert snapshot["stage_counts"] == {"salvage": 1}
    assert snapshot["failure_counts"] == {"exhausted_after_retry": 1, "no_candidate_found": 1}
