"""Core data models shared across docmirror components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, List, Optional, Tuple


def parent_dir(path: str) -> str:
    """Return the POSIX parent directory of ``path`` (``""`` for the root)."""
    parent = PurePosixPath(path).parent.as_posix()
    return "" if parent == "." else parent


def ancestor_dirs(path: str) -> List[str]:
    """Return every ancestor directory of ``path``, nearest first, root last."""
    ancestors: List[str] = []
    current = parent_dir(path)
    while current:
        ancestors.append(current)
        current = parent_dir(current)
    ancestors.append("")
    return ancestors


def display_dir(path: str) -> str:
    return path or "."


@dataclass(frozen=True)
class SourceFile:
    """Metadata for an individual source file."""

    path: str
    hash: Optional[str]
    line_count: int
    readable: bool = True


@dataclass(frozen=True)
class SourceTree:
    """Read-only snapshot of the source repository layout."""

    root: str
    files: Dict[str, SourceFile]

    @cached_property
    def directories(self) -> FrozenSet[str]:
        """Directories that directly contain at least one file."""
        return frozenset(parent_dir(path) for path in self.files)

    @cached_property
    def all_directories(self) -> FrozenSet[str]:
        """Directories holding files directly or through descendants."""
        result = set()
        for path in self.files:
            result.update(ancestor_dirs(path))
        return frozenset(result)

    @cached_property
    def _fragments(self) -> FrozenSet[str]:
        # Every contiguous run of path components, e.g. "kern", "sys/kern", "kern/vfs.c".
        fragments = set()
        for path in self.files:
            parts = path.split("/")
            for start in range(len(parts)):
                for end in range(start + 1, len(parts) + 1):
                    fragments.add("/".join(parts[start:end]))
        return frozenset(fragments)

    def has_fragment(self, path: str) -> bool:
        """True when ``path`` or its directory appears somewhere in the tree."""
        if path in self._fragments:
            return True
        parent = parent_dir(path)
        return bool(parent) and parent in self._fragments


@dataclass(frozen=True)
class DocFile:
    """Metadata for a Markdown documentation file."""

    path: str
    line_count: int
    hash: Optional[str]
    title: Optional[str] = None
    readable: bool = True

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def directory(self) -> str:
        return parent_dir(self.path)


@dataclass(frozen=True)
class DocTree:
    """Read-only snapshot of the documentation layout."""

    root: str
    files: Dict[str, DocFile]
    directories: FrozenSet[str] = frozenset()

    @cached_property
    def markdown_directories(self) -> FrozenSet[str]:
        """Directories that directly contain at least one Markdown file."""
        return frozenset(parent_dir(path) for path in self.files)

    def ordered_paths(self) -> List[str]:
        """Doc paths in directory-then-file traversal order."""
        return sorted(self.files, key=lambda path: (parent_dir(path), PurePosixPath(path).name))


@dataclass(frozen=True)
class CodeReference:
    """A single ``path:line[-line]`` citation found in a doc file."""

    doc_path: str
    doc_line: int
    target_path: str
    start_line: int
    end_line: Optional[int] = None
    anchor_text: Optional[str] = None
    raw: str = ""

    @property
    def location(self) -> str:
        if self.end_line is not None:
            return f"{self.target_path}:{self.start_line}-{self.end_line}"
        return f"{self.target_path}:{self.start_line}"

    @property
    def anchor_lines(self) -> Tuple[str, ...]:
        if not self.anchor_text:
            return ()
        return tuple(line for line in self.anchor_text.splitlines() if line.strip())


class OutcomeKind(str, Enum):
    VERIFIED = "verified"
    DRIFTED = "drifted"
    MISSING = "missing"
    SOURCE_UNREADABLE = "source_unreadable"


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of resolving one ``CodeReference``."""

    kind: OutcomeKind
    suggested_line: Optional[int] = None
    candidates: Tuple[int, ...] = ()
    low_confidence: bool = False
    detail: str = ""

    @classmethod
    def verified(cls, *, candidates: Tuple[int, ...] = (), low_confidence: bool = False) -> "ResolutionOutcome":
        return cls(OutcomeKind.VERIFIED, candidates=candidates, low_confidence=low_confidence)

    @classmethod
    def drifted(
        cls, suggested_line: int, *, candidates: Tuple[int, ...] = (), low_confidence: bool = False
    ) -> "ResolutionOutcome":
        return cls(
            OutcomeKind.DRIFTED,
            suggested_line=suggested_line,
            candidates=candidates,
            low_confidence=low_confidence,
        )

    @classmethod
    def missing(cls, detail: str = "") -> "ResolutionOutcome":
        return cls(OutcomeKind.MISSING, detail=detail)

    @classmethod
    def unreadable(cls, detail: str = "") -> "ResolutionOutcome":
        return cls(OutcomeKind.SOURCE_UNREADABLE, detail=detail)

    @property
    def resolvable(self) -> bool:
        return self.kind in (OutcomeKind.VERIFIED, OutcomeKind.DRIFTED)


@dataclass(frozen=True)
class ResolvedReference:
    """A reference tagged with its resolution outcome."""

    reference: CodeReference
    outcome: ResolutionOutcome


@dataclass(frozen=True)
class ExtractionError:
    """A per-file or per-citation extraction problem; recorded, never raised."""

    doc_path: str
    line: int
    kind: str
    message: str


class FindingKind(str, Enum):
    UNDOCUMENTED = "undocumented"
    ORPHANED = "orphaned"


@dataclass(frozen=True)
class MirrorFinding:
    """A structural mismatch between the source and documentation trees."""

    kind: FindingKind
    path: str
    whitelist_reason: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.whitelist_reason is None


@dataclass
class NavigationNode:
    """One entry of the synthesized navigation tree."""

    title: str
    path: str
    children: List["NavigationNode"] = field(default_factory=list)

    @property
    def is_section(self) -> bool:
        return bool(self.children)


class LedgerStatus(str, Enum):
    UNDOCUMENTED = "undocumented"
    STUB = "stub"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    LedgerStatus.UNDOCUMENTED: 0,
    LedgerStatus.STUB: 1,
    LedgerStatus.COMPLETE: 2,
}


@dataclass
class LedgerEntry:
    """Per-source-file documentation status carried across runs."""

    source_path: str
    status: LedgerStatus
    source_lines: int
    doc_lines: int = 0
    doc_paths: List[str] = field(default_factory=list)
    doc_hash: Optional[str] = None
    outcomes: Dict[str, int] = field(default_factory=dict)
    promotion_pending: bool = False
    updated_at: Optional[str] = None

    def same_content(self, other: "LedgerEntry") -> bool:
        """Compare everything except ``updated_at``."""
        return (
            self.source_path == other.source_path
            and self.status == other.status
            and self.source_lines == other.source_lines
            and self.doc_lines == other.doc_lines
            and self.doc_paths == other.doc_paths
            and self.doc_hash == other.doc_hash
            and self.outcomes == other.outcomes
            and self.promotion_pending == other.promotion_pending
        )
