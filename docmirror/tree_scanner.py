"""Source and documentation tree scanning utilities."""

from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence, Set, Tuple

from .config import FatalConfigError
from .logging import get_logger
from .models import DocFile, DocTree, SourceFile, SourceTree

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".docmirror",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

MARKDOWN_SUFFIXES = (".md", ".markdown")

_HEADING_PATTERN = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*#*\s*$")
_FENCE_PATTERN = re.compile(r"^\s{0,3}(`{3,}|~{3,})")

logger = get_logger("scanner")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or configured exclusions."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Unable to read %s: %s", path, exc)
        return []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _load_ignore_rules(root: Path, exclude_paths: Sequence[str]) -> List[IgnoreRule]:
    rules = _parse_gitignore(root / ".gitignore")
    for pattern in exclude_paths:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _walk(
    root: Path, rules: Sequence[IgnoreRule], skip: Set[Path]
) -> Iterator[Tuple[str, List[str]]]:
    """Yield ``(relative_dir, sorted_file_names)`` in sorted depth-first order."""
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            if (current_dir / name).resolve() in skip:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        kept_files = []
        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            kept_files.append(filename)
        yield rel_dir, kept_files


def _hash_file(path: Path) -> Tuple[str, int]:
    """Return the sha256 digest and line count of ``path``."""
    digest = hashlib.sha256()
    newlines = 0
    last = b""
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
            newlines += chunk.count(b"\n")
            last = chunk
    line_count = newlines
    if last and not last.endswith(b"\n"):
        line_count += 1
    return digest.hexdigest(), line_count


def extract_title(lines: Iterable[str]) -> str | None:
    """Return the text of the first ATX heading outside fenced code blocks."""
    fence: str | None = None
    for line in lines:
        fence_match = _FENCE_PATTERN.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0] * 3
            elif marker.startswith(fence):
                fence = None
            continue
        if fence is not None:
            continue
        match = _HEADING_PATTERN.match(line)
        if match:
            title = match.group(2).strip()
            if title:
                return title
    return None


def _resolve_root(root: Path | str, label: str) -> Path:
    root_path = Path(root).expanduser().resolve()
    if not root_path.exists():
        raise FatalConfigError(f"{label} not found: {root}")
    if not root_path.is_dir():
        raise FatalConfigError(f"{label} is not a directory: {root}")
    return root_path


class TreeScanner:
    """Walks the source and documentation roots to produce read-only snapshots."""

    def __init__(self, exclude_paths: Sequence[str] | None = None) -> None:
        self.exclude_paths = list(exclude_paths or [])

    def scan_source(self, root: Path | str, *, skip: Iterable[Path] = ()) -> SourceTree:
        """Return a snapshot of every source file with its hash and line count."""
        root_path = _resolve_root(root, "Source root")
        rules = _load_ignore_rules(root_path, self.exclude_paths)
        skip_set = {Path(item).resolve() for item in skip}

        files: Dict[str, SourceFile] = {}
        for rel_dir, names in _walk(root_path, rules, skip_set):
            for name in names:
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                try:
                    file_hash, line_count = _hash_file(root_path / rel_path)
                except OSError as exc:
                    logger.warning("Source file unreadable: %s (%s)", rel_path, exc)
                    files[rel_path] = SourceFile(path=rel_path, hash=None, line_count=0, readable=False)
                    continue
                files[rel_path] = SourceFile(path=rel_path, hash=file_hash, line_count=line_count)

        logger.debug("Scanned %d source files under %s", len(files), root_path)
        return SourceTree(root=str(root_path), files=files)

    def scan_docs(self, root: Path | str) -> DocTree:
        """Return a snapshot of the Markdown files and directories under ``root``."""
        root_path = _resolve_root(root, "Doc root")
        rules = _load_ignore_rules(root_path, self.exclude_paths)

        files: Dict[str, DocFile] = {}
        directories: Set[str] = set()
        for rel_dir, names in _walk(root_path, rules, set()):
            directories.add(rel_dir)
            for name in names:
                if not name.lower().endswith(MARKDOWN_SUFFIXES):
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                files[rel_path] = self._read_doc(root_path / rel_path, rel_path)

        logger.debug("Scanned %d Markdown files under %s", len(files), root_path)
        return DocTree(root=str(root_path), files=files, directories=frozenset(directories))

    @staticmethod
    def _read_doc(path: Path, rel_path: str) -> DocFile:
        try:
            raw = path.read_bytes()
        except OSError as exc:
            logger.warning("Doc file unreadable: %s (%s)", rel_path, exc)
            return DocFile(path=rel_path, line_count=0, hash=None, readable=False)
        text = raw.decode("utf-8", errors="replace")
        lines = text.splitlines()
        return DocFile(
            path=rel_path,
            line_count=len(lines),
            hash=hashlib.sha256(raw).hexdigest(),
            title=extract_title(lines),
        )


__all__ = ["IgnoreRule", "MARKDOWN_SUFFIXES", "TreeScanner", "build_ignore_rule", "extract_title"]
