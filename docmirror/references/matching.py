"""Windowed anchor search used for drift recovery."""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Iterator, List, Optional, Sequence, Tuple

MIN_MATCH_LENGTH = 4


@dataclass(frozen=True)
class AnchorMatch:
    """Where an anchor was found and how sure we are about it."""

    line: int
    exact: bool
    others: Tuple[int, ...] = ()

    @property
    def ambiguous(self) -> bool:
        return bool(self.others) or not self.exact


def traversal_order(center: int, radius: int, line_count: int, *, skip_within: int = -1) -> Iterator[int]:
    """Yield 1-based line numbers: ``center``, then ``center-1``, ``center+1``, ...

    Distances up to ``skip_within`` are omitted so widening windows only visit
    new lines.
    """
    for distance in range(skip_within + 1, radius + 1):
        if distance == 0:
            if 1 <= center <= line_count:
                yield center
            continue
        for candidate in (center - distance, center + distance):
            if 1 <= candidate <= line_count:
                yield candidate


def _exact(line: str, key: str) -> bool:
    stripped = line.strip()
    if not stripped:
        return False
    if key in stripped:
        return True
    return len(stripped) >= MIN_MATCH_LENGTH and stripped in key


def _similarity(line: str, key: str) -> float:
    stripped = line.strip()
    if not stripped or not key:
        return 0.0
    matcher = SequenceMatcher(None, stripped, key, autojunk=False)
    match = matcher.find_longest_match(0, len(stripped), 0, len(key))
    return match.size / len(key)


class WindowSearch:
    """Searches widening symmetric windows around a cited line for an anchor."""

    def __init__(self, windows: Sequence[int] = (5, 20, 100), similarity: float = 0.8) -> None:
        self.windows = sorted(set(int(radius) for radius in windows if int(radius) > 0)) or [5]
        self.similarity = similarity

    def find(self, lines: Sequence[str], center: int, key: str) -> Optional[AnchorMatch]:
        """Return the first match for ``key`` around ``center`` or ``None``."""
        key = key.strip()
        if not key or not lines:
            return None
        line_count = len(lines)
        center = min(max(center, 1), line_count)

        previous = -1
        for radius in self.windows:
            window = list(traversal_order(center, radius, line_count))
            new_lines = list(traversal_order(center, radius, line_count, skip_within=previous))
            previous = radius

            exact_hits = [number for number in new_lines if _exact(lines[number - 1], key)]
            if exact_hits:
                first = exact_hits[0]
                others = tuple(
                    sorted(number for number in window if number != first and _exact(lines[number - 1], key))
                )
                return AnchorMatch(line=first, exact=True, others=others)

            best = self._best_fuzzy(lines, new_lines, key)
            if best is not None:
                return best
            if len(window) >= line_count:
                break
        return None

    def _best_fuzzy(self, lines: Sequence[str], candidates: List[int], key: str) -> Optional[AnchorMatch]:
        best_line: Optional[int] = None
        best_score = 0.0
        for number in candidates:
            score = _similarity(lines[number - 1], key)
            # strict comparison keeps the earliest line in traversal order on ties
            if score > best_score:
                best_line, best_score = number, score
        if best_line is None or best_score < self.similarity:
            return None
        return AnchorMatch(line=best_line, exact=False)


__all__ = ["AnchorMatch", "WindowSearch", "traversal_order"]
