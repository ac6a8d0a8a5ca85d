"""Citation extraction from Markdown documentation."""

from __future__ import annotations

import re
from concurrent.futures import Executor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import CodeReference, DocFile, DocTree, ExtractionError, SourceTree

# path with at least one separator and an extension, then :line or :line-line
CITATION_PATTERN = re.compile(
    r"(?<![\w/.:\-])"
    r"(?P<path>(?:\./)?(?:[\w.\-]+/)+[\w.\-]*[\w\-]\.[A-Za-z0-9]{1,8})"
    r":(?P<start>-?\d+)"
    r"(?:-(?P<end>\d+))?"
    r"(?!\w)"
)
_CODE_SPAN_PATTERN = re.compile(r"`([^`]+)`")
_FENCE_PATTERN = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_IDENTIFIER_PATTERN = re.compile(r"(?<![\w/.\-])(?P<name>[A-Za-z_]\w*)(?P<call>\(\))?(?![\w/\-]|\.\w)")
_CAMEL_PATTERN = re.compile(r"[a-z][A-Z]")

MAX_ANCHOR_LINES = 3
MIN_ANCHOR_LENGTH = 4

FileResult = Tuple[List[CodeReference], List[ExtractionError]]

logger = get_logger("extractor")


def fence_flags(lines: Sequence[str]) -> List[bool]:
    """Return, per line, whether it sits inside a fenced block (fence lines included)."""
    flags: List[bool] = []
    fence: Optional[str] = None
    for line in lines:
        match = _FENCE_PATTERN.match(line)
        if match:
            marker = match.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence) and not line.strip()[len(marker):]:
                fence = None
            flags.append(True)
            continue
        flags.append(fence is not None)
    return flags


class ReferenceExtractor:
    """Scans documentation files for ``path:line`` citations and anchor text."""

    def __init__(self, strip_prefixes: Sequence[str] | None = None) -> None:
        self.strip_prefixes = list(strip_prefixes or [])

    def extract(
        self,
        doc_tree: DocTree,
        source_tree: SourceTree,
        *,
        executor: Executor | None = None,
    ) -> Tuple[List[CodeReference], List[ExtractionError]]:
        """Return references in traversal order plus any extraction errors."""
        paths = doc_tree.ordered_paths()
        docs = [doc_tree.files[path] for path in paths]
        root = Path(doc_tree.root)

        def _task(doc: DocFile) -> FileResult:
            return self.extract_file(root, doc, source_tree)

        if executor is not None:
            results = list(executor.map(_task, docs))
        else:
            results = [_task(doc) for doc in docs]

        references: List[CodeReference] = []
        errors: List[ExtractionError] = []
        for file_refs, file_errors in results:
            references.extend(file_refs)
            errors.extend(file_errors)
        logger.debug("Extracted %d citations from %d doc files", len(references), len(docs))
        return references, errors

    def extract_file(self, root: Path, doc: DocFile, source_tree: SourceTree) -> FileResult:
        try:
            text = (root / doc.path).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Unable to read doc file %s: %s", doc.path, exc)
            return [], [ExtractionError(doc.path, 0, "unreadable", f"unable to read file: {exc}")]
        return self.extract_text(doc.path, text, source_tree)

    def extract_text(self, doc_path: str, text: str, source_tree: SourceTree) -> FileResult:
        """Extract citations from already loaded Markdown ``text``."""
        lines = text.splitlines()
        in_fence = fence_flags(lines)
        references: List[CodeReference] = []
        errors: List[ExtractionError] = []

        for index, line in enumerate(lines):
            for match in CITATION_PATTERN.finditer(line):
                line_no = index + 1
                raw = match.group(0)
                start = int(match.group("start"))
                end = int(match.group("end")) if match.group("end") else None
                if start <= 0:
                    message = f"malformed citation {raw!r}: line number must be positive"
                    logger.warning("%s:%d %s", doc_path, line_no, message)
                    errors.append(ExtractionError(doc_path, line_no, "malformed", message))
                    continue
                if end is not None and end < start:
                    message = f"malformed citation {raw!r}: range end precedes start"
                    logger.warning("%s:%d %s", doc_path, line_no, message)
                    errors.append(ExtractionError(doc_path, line_no, "malformed", message))
                    continue

                target = self._normalise_target(match.group("path"), source_tree)
                if in_fence[index] and not source_tree.has_fragment(target):
                    logger.debug("%s:%d skipping illustrative citation %s", doc_path, line_no, raw)
                    continue

                references.append(
                    CodeReference(
                        doc_path=doc_path,
                        doc_line=line_no,
                        target_path=target,
                        start_line=start,
                        end_line=end if end is not None and end != start else None,
                        anchor_text=self._capture_anchor(lines, index, in_fence),
                        raw=raw,
                    )
                )
        return references, errors

    def _normalise_target(self, path: str, source_tree: SourceTree) -> str:
        while path.startswith("./"):
            path = path[2:]
        if path in source_tree.files:
            return path
        for prefix in self.strip_prefixes:
            if path.startswith(prefix) and path[len(prefix):] in source_tree.files:
                return path[len(prefix):]
        return path

    @staticmethod
    def _capture_anchor(lines: Sequence[str], index: int, in_fence: Sequence[bool]) -> Optional[str]:
        anchors: List[str] = []

        spans = []
        for span in _CODE_SPAN_PATTERN.findall(lines[index]):
            candidate = span.strip()
            if CITATION_PATTERN.search(candidate):
                continue
            if candidate.endswith("()"):
                candidate = candidate[:-1]
            if len(candidate) >= MIN_ANCHOR_LENGTH:
                spans.append(candidate)
        # longest first; sorted() is stable so equal lengths keep document order
        anchors.extend(sorted(spans, key=len, reverse=True))

        block_start: Optional[int] = None
        if in_fence[index]:
            block_start = index + 1
        else:
            for offset in (1, 2):
                row = index + offset
                if row < len(lines) and _FENCE_PATTERN.match(lines[row]):
                    block_start = row + 1
                    break
                if row < len(lines) and lines[row].strip():
                    break

        if block_start is not None:
            for row in range(block_start, len(lines)):
                if len(anchors) >= MAX_ANCHOR_LINES:
                    break
                if _FENCE_PATTERN.match(lines[row]) or not in_fence[row]:
                    break
                candidate = lines[row].strip()
                if len(candidate) < MIN_ANCHOR_LENGTH or CITATION_PATTERN.search(candidate):
                    continue
                anchors.append(candidate)

        if not anchors:
            identifier = _prose_identifier(lines[index])
            if identifier is not None:
                anchors.append(identifier)

        anchors = anchors[:MAX_ANCHOR_LINES]
        return "\n".join(anchors) if anchors else None


def _prose_identifier(line: str) -> Optional[str]:
    """Return the longest code-like word (``m_pullup()``, ``vfs_init``, ``bufInit``) in prose."""
    prose = _CODE_SPAN_PATTERN.sub(" ", CITATION_PATTERN.sub(" ", line))
    best: Optional[str] = None
    for match in _IDENTIFIER_PATTERN.finditer(prose):
        word = match.group("name")
        if not (match.group("call") or "_" in word.strip("_") or _CAMEL_PATTERN.search(word)):
            continue
        candidate = f"{word}(" if match.group("call") else word
        if len(candidate) >= MIN_ANCHOR_LENGTH and (best is None or len(candidate) > len(best)):
            best = candidate
    return best


__all__ = ["CITATION_PATTERN", "ReferenceExtractor", "fence_flags"]
