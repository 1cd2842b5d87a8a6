"""Sorted set keyed by member, ordered by (score, member)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from sortedcontainers import SortedList

_Text = Union[str, bytes]


@dataclass(frozen=True)
class Element:
    """A member of a sorted set together with its score."""

    member: bytes
    score: float


@dataclass(frozen=True)
class ScoreBorder:
    """A bound on scores, inclusive unless ``exclude`` is set."""

    value: float
    exclude: bool = False

    def admits_low(self, element: Element) -> bool:
        """True if ``element`` lies above this border used as a minimum."""
        if self.exclude:
            return element.score > self.value
        return element.score >= self.value

    def admits_high(self, element: Element) -> bool:
        """True if ``element`` lies below this border used as a maximum."""
        if self.exclude:
            return element.score < self.value
        return element.score <= self.value


@dataclass(frozen=True)
class LexBorder:
    """A bound on members; ``infinity`` is -1 for ``-``, 1 for ``+``, else 0."""

    value: bytes = b""
    exclude: bool = False
    infinity: int = 0

    def admits_low(self, element: Element) -> bool:
        if self.infinity:
            return self.infinity < 0
        if self.exclude:
            return element.member > self.value
        return element.member >= self.value

    def admits_high(self, element: Element) -> bool:
        if self.infinity:
            return self.infinity > 0
        if self.exclude:
            return element.member < self.value
        return element.member <= self.value


Border = Union[ScoreBorder, LexBorder]


def _as_str(text: _Text) -> str:
    if isinstance(text, bytes):
        return text.decode("utf-8", "surrogateescape")
    return text


def _as_bytes(text: _Text) -> bytes:
    if isinstance(text, str):
        return text.encode("utf-8", "surrogateescape")
    return text


def parse_score_border(text: _Text) -> ScoreBorder:
    """Parse a score bound such as ``5``, ``(5``, ``-inf`` or ``+inf``."""
    raw = _as_str(text)
    lowered = raw.lower()
    if lowered in ("inf", "+inf"):
        return ScoreBorder(math.inf)
    if lowered == "-inf":
        return ScoreBorder(-math.inf)
    exclude = raw.startswith("(")
    body = raw[1:] if exclude else raw
    if "_" in body or body.strip() != body:
        raise ValueError("ERR min or max is not a float")
    try:
        value = float(body)
    except ValueError:
        raise ValueError("ERR min or max is not a float") from None
    return ScoreBorder(value, exclude)


def parse_lex_border(text: _Text) -> LexBorder:
    """Parse a member bound such as ``[a``, ``(a``, ``-`` or ``+``."""
    raw = _as_bytes(text)
    if raw == b"+":
        return LexBorder(infinity=1)
    if raw == b"-":
        return LexBorder(infinity=-1)
    if raw.startswith(b"("):
        return LexBorder(raw[1:], exclude=True)
    if raw.startswith(b"["):
        return LexBorder(raw[1:], exclude=False)
    raise ValueError("ERR min or max not valid string range item")


class SortedSet:
    """Members with float scores, kept in ascending (score, member) order."""

    def __init__(self) -> None:
        self._scores: dict = {}
        self._order = SortedList()

    def add(self, member: bytes, score: float) -> bool:
        """Set the score of ``member``; return True if it was new."""
        old = self._scores.get(member)
        if old is not None:
            self._order.remove((old, member))
        self._scores[member] = score
        self._order.add((score, member))
        return old is None

    def get(self, member: bytes) -> Optional[Element]:
        score = self._scores.get(member)
        if score is None:
            return None
        return Element(member, score)

    def remove(self, member: bytes) -> bool:
        score = self._scores.pop(member, None)
        if score is None:
            return False
        self._order.remove((score, member))
        return True

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, member: object) -> bool:
        return member in self._scores

    def __iter__(self) -> Iterator[Element]:
        for score, member in self._order:
            yield Element(member, score)

    def _ordered(self, desc: bool) -> Iterator[Element]:
        pairs = reversed(self._order) if desc else iter(self._order)
        for score, member in pairs:
            yield Element(member, score)

    def get_rank(self, member: bytes, desc: bool) -> int:
        """Zero-based rank of ``member``, or -1 if absent."""
        score = self._scores.get(member)
        if score is None:
            return -1
        index = self._order.index((score, member))
        return len(self._order) - 1 - index if desc else index

    def range_by_rank(self, start: int, stop: int, desc: bool) -> List[Element]:
        """Elements with rank in ``[start, stop)``."""
        size = len(self._order)
        if desc:
            pairs = list(reversed(self._order[size - stop:size - start]))
        else:
            pairs = self._order[start:stop]
        return [Element(member, score) for score, member in pairs]

    def range(self, low: Border, high: Border, offset: int, limit: int,
              desc: bool) -> List[Element]:
        """Elements between the borders; a negative ``limit`` means no limit."""
        result: List[Element] = []
        if limit == 0:
            return result
        skipped = 0
        for element in self._ordered(desc):
            if desc:
                if not high.admits_high(element):
                    continue
                if not low.admits_low(element):
                    break
            else:
                if not low.admits_low(element):
                    continue
                if not high.admits_high(element):
                    break
            if skipped < offset:
                skipped += 1
                continue
            result.append(element)
            if 0 < limit <= len(result):
                break
        return result

    def range_count(self, low: Border, high: Border) -> int:
        return len(self.range(low, high, 0, -1, False))

    def remove_range(self, low: Border, high: Border) -> int:
        doomed = self.range(low, high, 0, -1, False)
        for element in doomed:
            self.remove(element.member)
        return len(doomed)

    def remove_by_rank(self, start: int, stop: int) -> int:
        doomed = self.range_by_rank(start, stop, False)
        for element in doomed:
            self.remove(element.member)
        return len(doomed)

    def pop_min(self, count: int) -> List[Element]:
        """Remove and return up to ``count`` lowest elements."""
        if count <= 0:
            return []
        popped = self.range_by_rank(0, min(count, len(self)), False)
        for element in popped:
            self.remove(element.member)
        return popped