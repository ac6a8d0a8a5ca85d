"""Deterministic navigation synthesis for the documentation site."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path, PurePosixPath
from typing import Dict, List, Sequence, Set

import yaml

from ..logging import get_logger
from ..models import DocFile, DocTree, NavigationNode, ancestor_dirs, parent_dir
from ..stores.atomic import write_if_changed

INDEX_NAMES = ("index.md", "index.markdown")
ROOT_TITLE = "Home"

logger = get_logger("nav")


class NavigationSynthesizer:
    """Builds the navigation tree: index first, pinned entries, pages by title, then sections."""

    def __init__(self, pinned: Sequence[str] | None = None) -> None:
        self.pinned = [entry.strip("/") for entry in (pinned or []) if entry.strip("/")]

    def build(self, doc_tree: DocTree) -> NavigationNode:
        """Return the root ``NavigationNode`` for ``doc_tree``."""
        pages: Dict[str, List[DocFile]] = defaultdict(list)
        subdirs: Dict[str, Set[str]] = defaultdict(set)
        for path in sorted(doc_tree.files):
            doc = doc_tree.files[path]
            pages[doc.directory].append(doc)
            child = doc.directory
            for ancestor in ancestor_dirs(path)[1:]:
                subdirs[ancestor].add(child)
                child = ancestor

        return self._build_dir("", pages, subdirs)

    def _build_dir(
        self,
        directory: str,
        pages: Dict[str, List[DocFile]],
        subdirs: Dict[str, Set[str]],
    ) -> NavigationNode:
        dir_pages = pages.get(directory, [])
        index = next((doc for doc in dir_pages if PurePosixPath(doc.path).name.lower() in INDEX_NAMES), None)
        default_title = ROOT_TITLE if not directory else PurePosixPath(directory).name
        node = NavigationNode(title=(index.title if index and index.title else default_title), path=directory)

        if index is not None:
            node.children.append(NavigationNode(title=index.title or default_title, path=index.path))

        by_path: Dict[str, NavigationNode] = {}
        ordered_pages = sorted(
            (doc for doc in dir_pages if doc is not index),
            key=lambda doc: (_page_title(doc).casefold(), _page_title(doc), PurePosixPath(doc.path).name),
        )
        page_nodes = []
        for doc in ordered_pages:
            page = NavigationNode(title=_page_title(doc), path=doc.path)
            by_path[doc.path] = page
            page_nodes.append(page)

        section_nodes = []
        for child in sorted(subdirs.get(directory, ()), key=lambda name: PurePosixPath(name).name):
            section = self._build_dir(child, pages, subdirs)
            by_path[child] = section
            section_nodes.append(section)

        pinned_nodes = [by_path[entry] for entry in self.pinned if parent_dir(entry) == directory and entry in by_path]
        pinned_ids = {id(item) for item in pinned_nodes}
        node.children.extend(pinned_nodes)
        node.children.extend(item for item in page_nodes if id(item) not in pinned_ids)
        node.children.extend(item for item in section_nodes if id(item) not in pinned_ids)
        return node

    def render(self, node: NavigationNode, fmt: str = "yaml") -> str:
        """Serialise the tree as MkDocs ``nav:`` YAML or a JSON tree."""
        if fmt == "json":
            return json.dumps(self.to_dict(node), indent=2, ensure_ascii=False) + "\n"
        if fmt != "yaml":
            raise ValueError(f"Unknown navigation format: {fmt}")
        payload = {"nav": [self._mkdocs_entry(child) for child in node.children]}
        return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False, allow_unicode=True)

    def write(self, node: NavigationNode, output: Path) -> bool:
        """Write the artifact for ``output``'s suffix; return True when the file changed."""
        fmt = "yaml" if output.suffix.lower() in (".yml", ".yaml") else "json"
        changed = write_if_changed(output, self.render(node, fmt))
        if changed:
            logger.info("Navigation written to %s", output)
        else:
            logger.info("Navigation at %s already up to date", output)
        return changed

    def to_dict(self, node: NavigationNode) -> Dict[str, object]:
        return {
            "title": node.title,
            "path": node.path,
            "children": [self.to_dict(child) for child in node.children],
        }

    def _mkdocs_entry(self, node: NavigationNode) -> Dict[str, object]:
        if node.is_section:
            return {node.title: [self._mkdocs_entry(child) for child in node.children]}
        return {node.title: node.path}


def _page_title(doc: DocFile) -> str:
    return doc.title or PurePosixPath(doc.path).stem


__all__ = ["NavigationSynthesizer"]
