"""Directory mirror validation tests."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from docmirror.models import FindingKind
from docmirror.validators import TreeMirrorValidator

from tests._fixtures.tree_builder import TreeBuilder


def _validate(tree_builder: TreeBuilder, whitelist=None):
    source_tree, doc_tree = tree_builder.scan()
    return TreeMirrorValidator().validate(source_tree, doc_tree, whitelist)


def test_mirrored_trees_produce_no_findings(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": "int vfs;\n", "net/if.c": "int ifp;\n"})
    tree_builder.write_docs({"index.md": "# Home\n", "kern/vfs.md": "# VFS\n", "net/index.md": "# Net\n"})

    assert _validate(tree_builder) == []


def test_new_source_directory_is_flagged_until_documented(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": "int vfs;\n"})
    tree_builder.write_docs({"kern/vfs.md": "# VFS\n"})
    assert _validate(tree_builder) == []

    tree_builder.write_source({"uvm/uvm_map.c": "int map;\n"})
    findings = _validate(tree_builder)
    assert [(finding.kind, finding.path) for finding in findings] == [(FindingKind.UNDOCUMENTED, "uvm")]
    assert findings[0].active

    tree_builder.write_docs({"uvm/index.md": "# UVM\n"})
    assert _validate(tree_builder) == []


def test_doc_directory_without_markdown_still_counts_as_undocumented(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": "int vfs;\n"})
    tree_builder.write_docs({"kern/diagram.svg": "<svg/>\n"})

    findings = _validate(tree_builder)

    assert [(finding.kind, finding.path) for finding in findings] == [(FindingKind.UNDOCUMENTED, "kern")]


def test_files_at_source_root_need_a_root_page(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"Makefile": "all:\n"})

    findings = _validate(tree_builder)

    assert [(finding.kind, finding.path) for finding in findings] == [(FindingKind.UNDOCUMENTED, ".")]


def test_orphaned_doc_directories_respect_whitelist(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": "int vfs;\n"})
    tree_builder.write_docs(
        {
            "kern/vfs.md": "# VFS\n",
            "primer/intro.md": "# Primer\n",
            "primer/deep/details.md": "# Details\n",
            "history/netbsd.md": "# History\n",
            "stale/old.md": "# Old\n",
        }
    )

    findings = _validate(tree_builder, {"primer": "conceptual primer", "history/netbsd.md": "background"})

    by_path = {finding.path: finding for finding in findings}
    assert sorted(by_path) == ["history", "primer", "primer/deep", "stale"]
    assert all(finding.kind is FindingKind.ORPHANED for finding in findings)
    assert by_path["primer"].whitelist_reason == "conceptual primer"
    assert by_path["primer/deep"].whitelist_reason == "conceptual primer"
    assert by_path["history"].whitelist_reason == "background"
    assert by_path["stale"].active
    assert [finding.path for finding in findings if finding.active] == ["stale"]


def test_pooled_validation_matches_sequential(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"a/x.c": "x\n", "b/y.c": "y\n", "c/z.c": "z\n"})
    tree_builder.write_docs({"a/x.md": "# X\n", "d/w.md": "# W\n"})
    source_tree, doc_tree = tree_builder.scan()
    validator = TreeMirrorValidator()

    sequential = validator.validate(source_tree, doc_tree)
    with ThreadPoolExecutor(max_workers=3) as executor:
        pooled = validator.validate(source_tree, doc_tree, executor=executor)

    assert pooled == sequential
    assert [(finding.kind.value, finding.path) for finding in sequential] == [
        ("undocumented", "b"),
        ("undocumented", "c"),
        ("orphaned", "d"),
    ]
