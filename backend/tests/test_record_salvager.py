"""
Unit tests for per-record salvage.
"""

import json

from casegen.recovery.salvager import find_records_array, normalize_record, salvage_records


def _case(case_id, title="Login", priority="high"):
    return {
        "id": case_id,
        "title": title,
        "steps": [{"id": "s1", "action": "a", "expectedResult": "b"}],
        "priority": priority,
    }


def test_broken_middle_object_is_skipped_in_order():
    text = (
        '{"testCases": ['
        + json.dumps(_case("TC-1"))
        + ', {"id": "TC-2", "title": , "priority": "low"}, '
        + json.dumps(_case("TC-3", title="Logout"))
        + "]}"
    )
    result = salvage_records(text)
    assert [record["id"] for record in result.records] == ["TC-1", "TC-3"]
    assert result.unparseable == 1
    assert not result.partial_tail


def test_bare_array_is_scanned():
    text = "[" + json.dumps(_case("TC-1")) + ", " + json.dumps(_case("TC-2"))
    result = salvage_records(text)
    assert [record["id"] for record in result.records] == ["TC-1", "TC-2"]


def test_records_missing_required_keys_are_incomplete():
    text = '[{"id": "TC-1", "title": "No priority"}, {"id": "", "title": "x", "priority": "low"}]'
    result = salvage_records(text)
    assert result.records == []
    assert result.incomplete == 2
    assert result.discarded == 2


def test_partial_tail_is_closed_and_offered():
    text = '{"testCases": [' + json.dumps(_case("TC-1")) + ', {"id": "TC-2", "title": "Tail", "priority": "low", "steps": [{"id": "s1"},'
    result = salvage_records(text)
    assert [record["id"] for record in result.records] == ["TC-1", "TC-2"]
    assert result.partial_tail
    assert result.tail_recovered
    assert result.records[1]["steps"] == [{"id": "s1"}]


def test_partial_tail_inside_string_is_dropped():
    text = '{"testCases": [' + json.dumps(_case("TC-1")) + ', {"id": "TC-2", "title": "Log'
    result = salvage_records(text)
    assert [record["id"] for record in result.records] == ["TC-1"]
    assert result.partial_tail
    assert not result.tail_recovered
    assert result.unparseable == 1


def test_stops_at_end_of_records_array():
    text = '{"testCases": [' + json.dumps(_case("TC-1")) + '], "extra": [{"id": "X", "title": "t", "priority": "low"}]}'
    result = salvage_records(text)
    assert [record["id"] for record in result.records] == ["TC-1"]


def test_nothing_to_salvage():
    assert salvage_records('{"summary": "no array here"}').records == []
    assert salvage_records("").records == []


def test_find_records_array_uses_custom_key():
    text = '{"notes": [1], "items": [{"id": "TC-1"}]}'
    assert find_records_array(text, "items") == text.index('[{"id"')
    assert find_records_array(text) == text.index("[1]")


def test_normalize_record_fills_nullable_fields():
    record = normalize_record({"id": "TC-1", "preconditions": None})
    assert record["preconditions"] == ""
    assert record["requirementIds"] == []


def test_mismatched_closer_inside_record_does_not_swallow_later_records():
    text = (
        "["
        + json.dumps(_case("TC-1"))
        + ', {"id": "TC-2", "title": "Broken", "steps": [{"id": "s1", "action": "a"}}, "priority": "low"}, '
        + json.dumps(_case("TC-3", title="Logout"))
        + "]"
    )
    result = salvage_records(text)
    assert [record["id"] for record in result.records] == ["TC-1", "TC-3"]
    assert result.unparseable == 1
    assert not result.partial_tail
