"""Directory-level mirror checks between the source and documentation trees."""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Callable, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..models import DocTree, FindingKind, MirrorFinding, SourceTree, ancestor_dirs, display_dir, parent_dir
from ..tree_scanner import MARKDOWN_SUFFIXES

logger = get_logger("mirror")


class TreeMirrorValidator:
    """Flags source directories without docs and doc directories without source.

    The rule is directory level: one page may document several source files
    in the same directory, so only the presence of a Markdown file in the
    mirroring directory is checked here.
    """

    name = "mirror"

    def validate(
        self,
        source_tree: SourceTree,
        doc_tree: DocTree,
        whitelist: Mapping[str, str] | None = None,
        *,
        executor: Executor | None = None,
    ) -> List[MirrorFinding]:
        whitelist = dict(whitelist or {})

        def _undocumented(directory: str) -> Optional[MirrorFinding]:
            if directory in doc_tree.markdown_directories:
                return None
            return MirrorFinding(FindingKind.UNDOCUMENTED, display_dir(directory))

        def _orphaned(directory: str) -> Optional[MirrorFinding]:
            if not directory or directory in source_tree.all_directories:
                return None
            reason = self._whitelist_reason(directory, whitelist)
            return MirrorFinding(FindingKind.ORPHANED, directory, whitelist_reason=reason)

        findings = self._map(_undocumented, sorted(source_tree.directories), executor)
        findings.extend(self._map(_orphaned, sorted(doc_tree.directories), executor))
        findings.sort(key=lambda finding: (finding.path, finding.kind.value))

        active = sum(1 for finding in findings if finding.active)
        logger.debug("Mirror check produced %d finding(s), %d active", len(findings), active)
        return findings

    @staticmethod
    def _map(
        check: Callable[[str], Optional[MirrorFinding]],
        directories: Sequence[str],
        executor: Executor | None,
    ) -> List[MirrorFinding]:
        if executor is not None:
            results = list(executor.map(check, directories))
        else:
            results = [check(directory) for directory in directories]
        return [finding for finding in results if finding is not None]

    @staticmethod
    def _whitelist_reason(directory: str, whitelist: Mapping[str, str]) -> Optional[str]:
        if directory in whitelist:
            return whitelist[directory]
        for ancestor in ancestor_dirs(directory):
            if ancestor and ancestor in whitelist:
                return whitelist[ancestor]
        for entry, reason in sorted(whitelist.items()):
            if entry.lower().endswith(MARKDOWN_SUFFIXES) and parent_dir(entry) == directory:
                return reason
        return None


__all__ = ["TreeMirrorValidator"]
