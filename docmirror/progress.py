"""Per-source-file documentation status tracking across runs."""

from __future__ import annotations

import hashlib
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set

from .config import Thresholds
from .logging import get_logger
from .models import (
    DocTree,
    FindingKind,
    LedgerEntry,
    LedgerStatus,
    MirrorFinding,
    OutcomeKind,
    ResolvedReference,
    SourceFile,
    SourceTree,
    display_dir,
    parent_dir,
)

logger = get_logger("progress")


@dataclass(frozen=True)
class StatusChange:
    """A ledger status transition between two runs."""

    source_path: str
    previous: LedgerStatus
    current: LedgerStatus


@dataclass
class LedgerUpdate:
    """Outcome of one ledger aggregation pass."""

    entries: Dict[str, LedgerEntry]
    regressions: List[StatusChange] = field(default_factory=list)
    held: List[StatusChange] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def count(self, status: LedgerStatus) -> int:
        return sum(1 for entry in self.entries.values() if entry.status is status)


def _utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


class ProgressLedger:
    """Derives undocumented / stub / complete status for every source file."""

    def __init__(self, thresholds: Thresholds | None = None, *, clock: Callable[[], str] | None = None) -> None:
        self.thresholds = thresholds or Thresholds()
        self._clock = clock or _utc_now

    def update(
        self,
        source_tree: SourceTree,
        doc_tree: DocTree,
        resolved: Sequence[ResolvedReference],
        findings: Sequence[MirrorFinding],
        prior: Mapping[str, LedgerEntry] | None = None,
    ) -> LedgerUpdate:
        """Return updated entries; downgrades apply, promotions need changed docs."""
        prior = dict(prior or {})
        undocumented_dirs = {
            finding.path for finding in findings if finding.kind is FindingKind.UNDOCUMENTED and finding.active
        }

        by_target: Dict[str, List[ResolvedReference]] = defaultdict(list)
        citing_pages: Dict[str, Set[str]] = defaultdict(set)
        for item in resolved:
            by_target[item.reference.target_path].append(item)
            citing_pages[item.reference.target_path].add(item.reference.doc_path)

        stem_pages: Dict[tuple[str, str], List[str]] = defaultdict(list)
        dir_pages: Dict[str, List[str]] = defaultdict(list)
        for doc in doc_tree.files.values():
            stem_pages[(doc.directory, doc.stem)].append(doc.path)
            dir_pages[doc.directory].append(doc.path)

        documented_by: Dict[str, List[str]] = {}
        documents: Dict[str, Set[str]] = defaultdict(set)
        for path in sorted(source_tree.files):
            directory = parent_dir(path)
            own_pages = set(stem_pages.get((directory, PurePosixPath(path).stem), []))
            pages = sorted(own_pages | citing_pages.get(path, set()))
            if not pages:
                # no dedicated page: the mirror directory's pages cover every file in it
                pages = sorted(dir_pages.get(directory, []))
            documented_by[path] = pages
            for page in pages:
                documents[page].add(path)

        # citations of files that no longer exist count against what the citing page documents
        for target, items in sorted(by_target.items()):
            if target in source_tree.files:
                continue
            for item in items:
                for owner in sorted(documents.get(item.reference.doc_path, ())):
                    by_target[owner].append(item)

        update = LedgerUpdate(entries={})
        for path in sorted(source_tree.files):
            source = source_tree.files[path]
            pages = documented_by[path]
            mirrored = display_dir(parent_dir(path)) not in undocumented_dirs
            entry = self._derive(source, pages, mirrored, doc_tree, by_target.get(path, []))
            update.entries[path] = self._apply_guard(entry, prior.get(path), update)

        update.removed = sorted(path for path in prior if path not in source_tree.files)
        for path in update.removed:
            logger.info("Source file removed, dropping ledger entry: %s", path)
        return update

    def _derive(
        self,
        source: SourceFile,
        pages: List[str],
        mirrored: bool,
        doc_tree: DocTree,
        references: Sequence[ResolvedReference],
    ) -> LedgerEntry:
        doc_lines = sum(doc_tree.files[page].line_count for page in pages)
        outcomes = Counter(item.outcome.kind.value for item in references)
        resolvable = sum(
            1 for item in references if item.outcome.resolvable and item.reference.target_path == source.path
        )
        broken = outcomes[OutcomeKind.MISSING.value] + outcomes[OutcomeKind.SOURCE_UNREADABLE.value]

        if not mirrored:
            status = LedgerStatus.UNDOCUMENTED
        elif doc_lines < self.thresholds.min_doc_lines:
            status = LedgerStatus.STUB
        elif broken:
            status = LedgerStatus.STUB
        elif source.line_count > self.thresholds.min_source_lines and resolvable == 0:
            status = LedgerStatus.STUB
        else:
            status = LedgerStatus.COMPLETE

        return LedgerEntry(
            source_path=source.path,
            status=status,
            source_lines=source.line_count,
            doc_lines=doc_lines,
            doc_paths=pages,
            doc_hash=_docs_hash(pages, doc_tree),
            outcomes=dict(sorted(outcomes.items())),
        )

    def _apply_guard(self, entry: LedgerEntry, previous: Optional[LedgerEntry], update: LedgerUpdate) -> LedgerEntry:
        if previous is not None:
            if entry.status.rank < previous.status.rank:
                update.regressions.append(StatusChange(entry.source_path, previous.status, entry.status))
                logger.info(
                    "Downgraded %s: %s -> %s", entry.source_path, previous.status.value, entry.status.value
                )
            elif (
                entry.status is LedgerStatus.COMPLETE
                and previous.status is not LedgerStatus.COMPLETE
                and entry.doc_hash == previous.doc_hash
            ):
                update.held.append(StatusChange(entry.source_path, previous.status, entry.status))
                logger.info(
                    "Holding %s at %s: documentation unchanged since the last run",
                    entry.source_path,
                    previous.status.value,
                )
                entry.status = previous.status
                entry.promotion_pending = True

        if previous is not None and entry.same_content(previous):
            entry.updated_at = previous.updated_at
        else:
            entry.updated_at = self._clock()
        return entry


def _docs_hash(pages: Sequence[str], doc_tree: DocTree) -> Optional[str]:
    if not pages:
        return None
    digest = hashlib.sha256()
    for page in pages:
        digest.update(f"{page}\0{doc_tree.files[page].hash or ''}\n".encode("utf-8"))
    return digest.hexdigest()


__all__ = ["LedgerUpdate", "ProgressLedger", "StatusChange"]
