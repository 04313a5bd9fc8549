"""Locate the outermost JSON value in a model response."""

from __future__ import annotations

import re
from typing import Optional

from casegen.core.json_utils import OPENERS, find_balanced_end
from casegen.recovery.types import CandidateSpan

_LEADING_FENCE = re.compile(r"^```[\w.+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*$")
_INNER_FENCE = re.compile(r"```[\w.+-]*[ \t]*\n")


def strip_wrapping(text: str) -> str:
    """Trim whitespace, fenced-code markers and stray backticks."""
    cleaned = (text or "").strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip("`").strip()


def _fenced_body(text: str) -> Optional[str]:
    match = _INNER_FENCE.search(text)
    if not match:
        return None
    body = text[match.end() :]
    close_index = body.find("```")
    if close_index >= 0:
        body = body[:close_index]
    return body


def _first_opener(text: str) -> int:
    positions = [pos for pos in (text.find("{"), text.find("[")) if pos >= 0]
    return min(positions) if positions else -1


def extract_candidate(raw_text: str) -> Optional[CandidateSpan]:
    """Return the span of the first JSON object/array, or ``None`` when none exists.

    A span whose opener is never closed ends at the last occurrence of the
    matching closer (or end of input) and is flagged ``truncated``.
    """
    cleaned = strip_wrapping(raw_text)
    body = _fenced_body(cleaned)
    if body is not None and _first_opener(body) >= 0:
        cleaned = body.strip()

    start = _first_opener(cleaned)
    if start < 0:
        return None

    end_index = find_balanced_end(cleaned, start)
    if end_index is not None:
        return CandidateSpan(source=cleaned, start=start, end=end_index + 1)

    last_close = cleaned.rfind(OPENERS[cleaned[start]])
    end = last_close + 1 if last_close > start else len(cleaned)
    return CandidateSpan(source=cleaned, start=start, end=end, truncated=True)


__all__ = ["strip_wrapping", "extract_candidate"]
