"""Structural repair of JSON spans that fail a direct parse.

Repairs are purely structural: unterminated strings are closed, dangling
commas removed and open brackets closed in reverse-open order. Field values
are never rewritten.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from casegen.core.json_utils import close_structures, iter_closed_objects, parse_json, scan_text

logger = structlog.get_logger()

_OPEN_VALUE = re.compile(r':\s*"[^"]*$')
_MIN_RECORD_KEYS = ("id", "priority")


@dataclass
class RepairResult:
    text: Optional[str] = None
    value: Any = None
    closed_string: bool = False
    from_fragments: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.text is not None


def close_unterminated_string(text: str, anchor_window: int = 50) -> str:
    """Close a string left open at end of text.

    When the opening quote looks like the start of a value (a colon in the
    lookback window that is not already an open ``:"...`` value), everything
    after the quote is dropped and the value becomes empty. Otherwise a quote
    is appended at the very end. This placement is approximate.
    """
    state = scan_text(text)
    if not state.in_string:
        return text
    anchor = state.string_start
    window = text[max(0, anchor - anchor_window) : anchor]
    if anchor >= 0 and ":" in window and not _OPEN_VALUE.search(window):
        return text[: anchor + 1] + '"'
    return text + '"'


def collect_record_fragments(text: str) -> List[Dict[str, Any]]:
    """Complete, parseable objects carrying ``id`` and ``priority``, outermost first."""
    fragments: List[Dict[str, Any]] = []
    accepted_end = -1
    for start, end in iter_closed_objects(text):
        if start <= accepted_end:
            continue
        candidate = text[start : end + 1]
        if not all(f'"{key}"' in candidate for key in _MIN_RECORD_KEYS):
            continue
        parsed, error = parse_json(candidate)
        if error is not None or not isinstance(parsed, dict):
            continue
        if all(key in parsed for key in _MIN_RECORD_KEYS):
            fragments.append(parsed)
            accepted_end = end
    return fragments


def repair_json(text: str, *, anchor_window: int = 50, records_key: str = "testCases") -> RepairResult:
    source = (text or "").strip()
    repaired = source
    closed_string = scan_text(repaired).in_string
    if closed_string:
        repaired = close_unterminated_string(repaired, anchor_window)
    repaired, _ = close_structures(repaired)

    parsed, error = parse_json(repaired)
    if error is None:
        return RepairResult(text=repaired, value=parsed, closed_string=closed_string)

    # objects closed by the suffix above are not complete in the source
    fragments = collect_record_fragments(source)
    if fragments:
        logger.info("json_repair_rebuilt_from_fragments", fragments=len(fragments))
        wrapper = {records_key: fragments}
        return RepairResult(
            text=json.dumps(wrapper, ensure_ascii=False),
            value=wrapper,
            closed_string=closed_string,
            from_fragments=True,
        )
    return RepairResult(closed_string=closed_string, error=str(error))


__all__ = ["RepairResult", "close_unterminated_string", "collect_record_fragments", "repair_json"]
