"""Helper utilities for constructing paired source/doc trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping, Tuple

from docmirror.config import DocMirrorConfig
from docmirror.models import DocTree, SourceTree
from docmirror.tree_scanner import TreeScanner


class TreeBuilder:
    """Utility for writing throwaway source and doc trees and rescanning them."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "workspace"
        self.source_root = self.root / "src"
        self.doc_root = self.root / "docs"
        self.source_root.mkdir(parents=True)
        self.doc_root.mkdir(parents=True)
        self._scanner = TreeScanner()

    def write_source(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the source tree."""
        self._write(self.source_root, files)

    def write_docs(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the doc tree."""
        self._write(self.doc_root, files)

    def remove_source(self, relative: str) -> None:
        (self.source_root / relative).unlink()

    def scan(self) -> Tuple[SourceTree, DocTree]:
        """Return fresh snapshots of both trees."""
        return self._scanner.scan_source(self.source_root), self._scanner.scan_docs(self.doc_root)

    def config(self, **overrides: object) -> DocMirrorConfig:
        """Return a config pointing at both roots with a ledger inside the workspace."""
        values = {
            "base_dir": self.root,
            "source_root": self.source_root,
            "doc_root": self.doc_root,
            "ledger": self.root / ".docmirror" / "ledger.json",
            "workers": 2,
        }
        values.update(overrides)
        return DocMirrorConfig(**values)  # type: ignore[arg-type]

    @staticmethod
    def _write(root: Path, files: Mapping[str, str]) -> None:
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")


def numbered_source(total: int, markers: Mapping[int, str] | None = None) -> str:
    """Return ``total`` filler lines with selected 1-based lines replaced by ``markers``."""
    lines = [f"/* line {number} */" for number in range(1, total + 1)]
    for number, text in (markers or {}).items():
        lines[number - 1] = text
    return "\n".join(lines) + "\n"


def markdown_page(total: int, *citations: str, title: str = "VFS") -> str:
    """Return a Markdown page of ``total`` lines carrying one citation line per entry."""
    lines = [f"# {title}", ""]
    lines.extend(citations)
    lines.extend(f"Paragraph {number}." for number in range(total - len(lines)))
    return "\n".join(lines) + "\n"


__all__ = ["TreeBuilder", "markdown_page", "numbered_source"]
