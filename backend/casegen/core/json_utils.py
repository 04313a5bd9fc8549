"""
JSON scanning helpers.

A single string-aware state machine shared by the extractor, repairer and
salvager. Characters inside quoted strings never change nesting depth, and a
backslash-escaped quote never toggles string state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Tuple

OPENERS = {"{": "}", "[": "]"}
CLOSERS = {"}": "{", "]": "["}

OPEN = "open"
CLOSE = "close"
STRAY = "stray"


@dataclass
class ScanState:
    in_string: bool = False
    escape: bool = False
    string_start: int = -1
    stack: List[str] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return len(self.stack)

    def feed(self, ch: str, index: int = -1) -> Optional[str]:
        """Advance over one character.

        Returns ``OPEN``/``CLOSE`` for structural characters outside strings,
        ``STRAY`` for a closer that does not match the innermost opener, and
        ``None`` for everything else.
        """
        if self.in_string:
            if self.escape:
                self.escape = False
            elif ch == "\\":
                self.escape = True
            elif ch == '"':
                self.in_string = False
            return None
        if ch == '"':
            self.in_string = True
            self.string_start = index
            return None
        if ch in OPENERS:
            self.stack.append(ch)
            return OPEN
        if ch in CLOSERS:
            if self.stack and self.stack[-1] == CLOSERS[ch]:
                self.stack.pop()
                return CLOSE
            return STRAY
        return None

    def closing_suffix(self) -> str:
        return "".join(OPENERS[opener] for opener in reversed(self.stack))


def scan_text(text: str, start: int = 0) -> ScanState:
    state = ScanState()
    for i in range(start, len(text)):
        state.feed(text[i], i)
    return state


def find_balanced_end(text: str, start_index: int) -> Optional[int]:
    """Return the inclusive index closing the value opened at ``start_index``."""
    if start_index < 0 or start_index >= len(text) or text[start_index] not in OPENERS:
        return None
    state = ScanState()
    for i in range(start_index, len(text)):
        kind = state.feed(text[i], i)
        if kind == CLOSE and state.depth == 0:
            return i
    return None


def iter_closed_objects(text: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` inclusive spans of every balanced ``{...}``, ordered by start."""
    state = ScanState()
    open_positions: List[int] = []
    spans: List[Tuple[int, int]] = []
    for i, ch in enumerate(text):
        kind = state.feed(ch, i)
        if kind == OPEN:
            open_positions.append(i)
        elif kind == CLOSE:
            start = open_positions.pop()
            if ch == "}":
                spans.append((start, i))
    spans.sort()
    yield from spans


def strip_dangling_commas(text: str) -> str:
    """Drop commas (outside strings) that precede a closer or the end of text."""
    state = ScanState()
    out: List[str] = []
    pending_comma = -1
    for i, ch in enumerate(text):
        was_in_string = state.in_string
        state.feed(ch, i)
        if was_in_string:
            out.append(ch)
            pending_comma = -1
            continue
        if ch == ",":
            pending_comma = len(out)
            out.append(ch)
            continue
        if ch in CLOSERS and pending_comma >= 0:
            del out[pending_comma]
        if not ch.isspace():
            pending_comma = -1
        out.append(ch)
    if pending_comma >= 0:
        del out[pending_comma]
    return "".join(out)


def close_structures(text: str) -> Tuple[str, ScanState]:
    """Strip dangling commas, then close open brackets last-opened first."""
    cleaned = strip_dangling_commas(text)
    state = scan_text(cleaned)
    if state.in_string:
        return cleaned, state
    return cleaned + state.closing_suffix(), state


def parse_json(text: str) -> Tuple[Any, Optional[ValueError]]:
    try:
        return json.loads(text), None
    except json.JSONDecodeError as exc:
        return None, exc
    except RecursionError:
        # pathological nesting depth
        return None, ValueError("nesting too deep to parse")


def error_context(text: str, position: int, radius: int = 100) -> str:
    start = max(0, position - radius)
    end = min(len(text), position + radius)
    return text[start:end]
