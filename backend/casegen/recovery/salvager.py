"""Salvage complete test-case objects from a truncated or broken array."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from casegen.core.json_utils import ScanState, close_structures, parse_json

logger = structlog.get_logger()

_REQUIRED_KEYS = ("id", "title", "priority")


@dataclass
class SalvageResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    unparseable: int = 0
    incomplete: int = 0
    partial_tail: bool = False
    tail_recovered: bool = False

    @property
    def discarded(self) -> int:
        return self.unparseable + self.incomplete


def find_records_array(text: str, records_key: str = "testCases") -> int:
    """Index of the records array's opening bracket, or -1."""
    if text.lstrip().startswith("{"):
        key_index = text.find(f'"{records_key}"')
        if key_index < 0:
            key_index = text.find(records_key)
        if key_index >= 0:
            return text.find("[", key_index)
    return text.find("[")


def normalize_record(obj: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(obj)
    if record.get("preconditions") is None:
        record["preconditions"] = ""
    if record.get("requirementIds") is None:
        record["requirementIds"] = []
    return record


def _offer(result: SalvageResult, span: str) -> bool:
    parsed, error = parse_json(span)
    if error is not None or not isinstance(parsed, dict):
        result.unparseable += 1
        return False
    if not all(parsed.get(key) for key in _REQUIRED_KEYS):
        result.incomplete += 1
        return False
    result.records.append(normalize_record(parsed))
    return True


def salvage_records(text: str, *, records_key: str = "testCases") -> SalvageResult:
    """Parse each top-level object of the records array in isolation.

    A corrupt object is skipped without aborting the scan. An object cut off
    at end of input is closed with the repair bracket rule and offered once;
    one cut inside a string is dropped.
    """
    result = SalvageResult()
    text = text or ""
    array_start = find_records_array(text, records_key)
    if array_start < 0:
        return result

    # ScanState only tracks strings here; braces and brackets are counted independently
    state = ScanState()
    braces = 0
    brackets = 0
    record_start: Optional[int] = None
    for i in range(array_start + 1, len(text)):
        ch = text[i]
        if state.feed(ch, i) is None:
            continue
        if ch == "{":
            braces += 1
            if braces == 1:
                record_start = i
        elif ch == "}":
            if braces == 0:
                continue
            braces -= 1
            if braces == 0 and record_start is not None:
                _offer(result, text[record_start : i + 1])
                record_start = None
                brackets = 0
        elif ch == "[":
            brackets += 1
        elif ch == "]":
            if braces == 0 and brackets == 0:
                break
            brackets = max(0, brackets - 1)

    if record_start is not None:
        result.partial_tail = True
        closed, tail_state = close_structures(text[record_start:])
        if tail_state.in_string:
            result.unparseable += 1
        else:
            result.tail_recovered = _offer(result, closed)

    logger.info(
        "record_salvage_finished",
        accepted=len(result.records),
        discarded=result.discarded,
        partial_tail=result.partial_tail,
        tail_recovered=result.tail_recovered,
    )
    return result


__all__ = ["SalvageResult", "find_records_array", "normalize_record", "salvage_records"]
