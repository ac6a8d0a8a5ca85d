"""Resolution of citations against the live source tree."""

from __future__ import annotations

from collections import defaultdict
from concurrent.futures import Executor
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import CodeReference, ResolutionOutcome, ResolvedReference, SourceTree
from .matching import WindowSearch

logger = get_logger("resolver")


def read_source_lines(source_tree: SourceTree, path: str) -> List[str]:
    """Return the lines of a source file, counted the same way the scanner counts them."""
    raw = (Path(source_tree.root) / path).read_bytes()
    text = raw.decode("utf-8", errors="replace")
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class ReferenceResolver:
    """Classifies citations as verified, drifted, missing or unreadable."""

    def __init__(self, windows: Sequence[int] = (5, 20, 100), similarity: float = 0.8) -> None:
        self.search = WindowSearch(windows, similarity)

    def resolve(
        self,
        reference: CodeReference,
        source_tree: SourceTree,
        *,
        lines: Optional[Sequence[str]] = None,
    ) -> ResolutionOutcome:
        """Resolve a single reference; ``lines`` may carry an already loaded file."""
        source = source_tree.files.get(reference.target_path)
        if source is None:
            return ResolutionOutcome.missing(f"{reference.target_path} not found in source tree")
        if not source.readable:
            return ResolutionOutcome.unreadable(f"{reference.target_path} could not be read")

        if lines is None:
            try:
                lines = read_source_lines(source_tree, reference.target_path)
            except OSError as exc:
                logger.debug("Unable to read %s: %s", reference.target_path, exc)
                return ResolutionOutcome.unreadable(f"{reference.target_path} could not be read: {exc}")

        return self._resolve_lines(reference, lines)

    def resolve_all(
        self,
        references: Sequence[CodeReference],
        source_tree: SourceTree,
        *,
        executor: Executor | None = None,
    ) -> List[ResolvedReference]:
        """Resolve every reference, reading each target file once; input order is kept."""
        grouped: Dict[str, List[int]] = defaultdict(list)
        for index, reference in enumerate(references):
            grouped[reference.target_path].append(index)
        targets = sorted(grouped)

        def _task(target: str) -> List[Tuple[int, ResolutionOutcome]]:
            indices = grouped[target]
            lines: Optional[List[str]] = None
            source = source_tree.files.get(target)
            if source is not None and source.readable:
                try:
                    lines = read_source_lines(source_tree, target)
                except OSError as exc:
                    logger.debug("Unable to read %s: %s", target, exc)
                    outcome = ResolutionOutcome.unreadable(f"{target} could not be read: {exc}")
                    return [(index, outcome) for index in indices]
            return [(index, self.resolve(references[index], source_tree, lines=lines)) for index in indices]

        if executor is not None:
            batches = list(executor.map(_task, targets))
        else:
            batches = [_task(target) for target in targets]

        outcomes: Dict[int, ResolutionOutcome] = {}
        for batch in batches:
            outcomes.update(batch)
        logger.debug("Resolved %d citations across %d source files", len(references), len(targets))
        return [ResolvedReference(reference, outcomes[index]) for index, reference in enumerate(references)]

    def _resolve_lines(self, reference: CodeReference, lines: Sequence[str]) -> ResolutionOutcome:
        line_count = len(lines)
        start = reference.start_line
        end = reference.end_line if reference.end_line is not None else start
        in_bounds = end <= line_count

        anchors = reference.anchor_lines
        if not anchors:
            if in_bounds:
                return ResolutionOutcome.verified()
            return ResolutionOutcome.missing(
                f"line {end} is beyond the end of {reference.target_path} ({line_count} lines) and no anchor text was captured"
            )

        match = None
        for key in anchors:
            match = self.search.find(lines, start, key)
            if match is not None:
                break
        if match is None:
            radius = max(self.search.windows)
            return ResolutionOutcome.missing(
                f"anchor text not found within {radius} lines of {reference.target_path}:{min(start, line_count)}"
            )

        if match.line == start and in_bounds:
            return ResolutionOutcome.verified(candidates=match.others, low_confidence=match.ambiguous)
        return ResolutionOutcome.drifted(match.line, candidates=match.others, low_confidence=match.ambiguous)


__all__ = ["ReferenceResolver", "read_source_lines"]
