"""End-to-end orchestrator runs over throwaway trees."""

from __future__ import annotations

from pathlib import Path

import pytest

from docmirror.config import FatalConfigError
from docmirror.models import LedgerStatus
from docmirror.orchestrator import Orchestrator

from tests._fixtures.tree_builder import TreeBuilder, markdown_page, numbered_source

CITATION = "`vfs_init()` is set up at kern/vfs.c:253."


def _drifted_tree(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": numbered_source(300, {260: "vfs_init(void)"})})
    tree_builder.write_docs({"index.md": "# Kernel\n", "kern/vfs.md": markdown_page(25, CITATION)})


def test_validate_reports_drift_with_location(tree_builder: TreeBuilder) -> None:
    _drifted_tree(tree_builder)

    outcome = Orchestrator(tree_builder.config()).run_validate()

    assert outcome.has_findings
    assert [line.render() for line in outcome.lines] == [
        "kern/vfs.md:3: drifted: kern/vfs.c:253 -> kern/vfs.c:260"
    ]
    assert outcome.broken_references == []
    assert outcome.active_mirror_findings == []


def test_validate_clean_tree_has_no_findings(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": numbered_source(300, {253: "vfs_init(void)"})})
    tree_builder.write_docs({"kern/vfs.md": markdown_page(25, CITATION)})

    outcome = Orchestrator(tree_builder.config()).run_validate()

    assert outcome.lines == []
    assert not outcome.has_findings


def test_validate_reports_mirror_and_extraction_findings(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": "int vfs;\n", "net/if.c": "int ifp;\n"})
    tree_builder.write_docs({"kern/vfs.md": "# VFS\nSee kern/vfs.c:0\n", "old/page.md": "# Old\n"})

    outcome = Orchestrator(tree_builder.config()).run_validate()

    rendered = [line.render() for line in outcome.lines]
    assert rendered[0].startswith("kern/vfs.md:2: malformed:")
    assert rendered[1:] == [
        "net: undocumented: source directory has no Markdown in its mirror directory",
        "old: orphaned: doc directory has no source counterpart",
    ]


def test_whitelisted_directories_are_not_reported(tree_builder: TreeBuilder) -> None:
    tree_builder.write_source({"kern/vfs.c": "int vfs;\n"})
    tree_builder.write_docs({"kern/vfs.md": "# VFS\n", "primer/intro.md": "# Primer\n"})
    whitelist = tree_builder.root / "whitelist.txt"
    whitelist.write_text("primer  # conceptual primer\n", encoding="utf-8")

    outcome = Orchestrator(tree_builder.config(whitelist=whitelist)).run_validate()

    assert outcome.lines == []
    assert [finding.whitelist_reason for finding in outcome.findings] == ["conceptual primer"]


def test_missing_doc_root_is_fatal(tree_builder: TreeBuilder) -> None:
    config = tree_builder.config(doc_root=tree_builder.root / "nope")

    with pytest.raises(FatalConfigError):
        Orchestrator(config).run_validate()


def test_nav_run_writes_yaml_once(tree_builder: TreeBuilder) -> None:
    _drifted_tree(tree_builder)
    output = tree_builder.root / "nav.yml"
    orchestrator = Orchestrator(tree_builder.config())

    first = orchestrator.run_nav(output)
    second = orchestrator.run_nav(output)

    assert first.changed is True
    assert second.changed is False
    assert output.read_text(encoding="utf-8").startswith("nav:\n")


def test_report_persists_ledger_and_rerun_is_stable(tree_builder: TreeBuilder) -> None:
    _drifted_tree(tree_builder)
    config = tree_builder.config()
    table_path = tree_builder.root / "STATUS.md"

    first = Orchestrator(config).run_report(table_output=table_path)
    ledger_bytes = config.ledger_path.read_bytes()
    second = Orchestrator(config).run_report()

    assert first.written is True
    assert first.ledger_path == config.ledger_path
    assert first.update.entries["kern/vfs.c"].status is LedgerStatus.COMPLETE
    assert "| `kern/vfs.c` | 300 | 25 | complete | 0/1/0/0 |" in first.table
    assert table_path.read_text(encoding="utf-8") == first.table
    assert second.has_regressions is False
    assert config.ledger_path.read_bytes() == ledger_bytes


def test_report_dry_run_leaves_ledger_untouched(tree_builder: TreeBuilder) -> None:
    _drifted_tree(tree_builder)
    config = tree_builder.config()

    outcome = Orchestrator(config).run_report(dry_run=True, table_output=tree_builder.root / "STATUS.md")

    assert outcome.written is False
    assert not config.ledger_path.exists()
    assert not (tree_builder.root / "STATUS.md").exists()
    assert "# Documentation Status" in outcome.table


def test_report_flags_regression_after_doc_shrinks(tree_builder: TreeBuilder, tmp_path: Path) -> None:
    _drifted_tree(tree_builder)
    ledger = tmp_path / "custom" / "ledger.json"
    config = tree_builder.config()
    Orchestrator(config).run_report(ledger_path=ledger)

    tree_builder.write_docs({"kern/vfs.md": markdown_page(5, CITATION)})
    outcome = Orchestrator(config).run_report(ledger_path=ledger)

    assert outcome.has_regressions
    assert "## Regressions" in outcome.table
    assert "- `kern/vfs.c`: complete -> stub" in outcome.table
