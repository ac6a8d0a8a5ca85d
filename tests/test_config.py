"""Configuration loading and override precedence tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from docmirror.config import (
    DocMirrorConfig,
    FatalConfigError,
    apply_overrides,
    load_config,
    load_whitelist,
    require_root,
)


def test_load_config_defaults_when_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.base_dir == tmp_path.resolve()
    assert config.source_root is None
    assert config.thresholds.min_doc_lines == 20
    assert config.thresholds.min_source_lines == 50
    assert config.resolver.windows == [5, 20, 100]
    assert config.resolver.similarity == pytest.approx(0.8)
    assert config.ledger_path == tmp_path.resolve() / ".docmirror" / "ledger.json"


def test_load_config_reads_yaml_relative_to_file(tmp_path: Path) -> None:
    config_path = tmp_path / ".docmirror.yml"
    config_path.write_text(
        "\n".join(
            [
                "source_root: sys",
                "doc_root: docs",
                "whitelist: docs/.whitelist",
                "workers: 3",
                "exclude_paths:",
                "  - compile/",
                "strip_prefixes: sys",
                "thresholds:",
                "  min_doc_lines: 10",
                "resolver:",
                "  windows: [50, 10]",
                "  similarity: 0.9",
                "nav:",
                "  pinned: [./architecture.md]",
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    base = tmp_path.resolve()
    assert config.source_root == base / "sys"
    assert config.doc_root == base / "docs"
    assert config.whitelist == base / "docs" / ".whitelist"
    assert config.workers == 3
    assert config.exclude_paths == ["compile/"]
    assert config.strip_prefixes == ["sys/"]
    assert config.thresholds.min_doc_lines == 10
    assert config.thresholds.min_source_lines == 50
    assert config.resolver.windows == [10, 50]
    assert config.resolver.similarity == pytest.approx(0.9)
    assert config.nav.pinned == ["architecture.md"]


def test_load_config_rejects_explicit_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FatalConfigError):
        load_config(tmp_path / "absent.yml")


def test_load_config_rejects_bad_types(tmp_path: Path) -> None:
    config_path = tmp_path / ".docmirror.yml"
    config_path.write_text("thresholds:\n  min_doc_lines: many\n", encoding="utf-8")

    with pytest.raises(FatalConfigError) as excinfo:
        load_config(config_path)
    assert "thresholds.min_doc_lines" in str(excinfo.value)


def test_overrides_prefer_flag_then_environment_then_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    base = tmp_path.resolve()
    config = DocMirrorConfig(base_dir=base, source_root=base / "configured", doc_root=base / "configured-docs", workers=2)
    environ = {
        "DOCMIRROR_SOURCE_ROOT": "from-env",
        "DOCMIRROR_DOC_ROOT": "docs-from-env",
        "DOCMIRROR_WORKERS": "6",
    }

    effective = apply_overrides(config, source_root="from-flag", environ=environ)

    assert effective.source_root == base / "from-flag"
    assert effective.doc_root == base / "docs-from-env"
    assert effective.workers == 6
    assert effective.whitelist is None
    assert config.source_root == base / "configured"

    untouched = apply_overrides(config, environ={})
    assert untouched.source_root == base / "configured"
    assert untouched.workers == 2


def test_overrides_reject_non_positive_workers(tmp_path: Path) -> None:
    config = DocMirrorConfig(base_dir=tmp_path)
    with pytest.raises(FatalConfigError):
        apply_overrides(config, environ={"DOCMIRROR_WORKERS": "0"})


def test_load_whitelist_parses_reasons_and_comments(tmp_path: Path) -> None:
    whitelist = tmp_path / "whitelist.txt"
    whitelist.write_text(
        "# documentation-only pages\n\nprimer/  # conceptual primer\n./history\narchitecture.md # overview\n",
        encoding="utf-8",
    )

    entries = load_whitelist(whitelist)

    assert entries == {
        "primer": "conceptual primer",
        "history": "whitelisted",
        "architecture.md": "overview",
    }


def test_load_whitelist_unreadable_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(FatalConfigError):
        load_whitelist(tmp_path / "missing.txt")


def test_require_root_rejects_files_and_missing_paths(tmp_path: Path) -> None:
    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")

    assert require_root(tmp_path, "source root") == tmp_path
    with pytest.raises(FatalConfigError):
        require_root(file_path, "source root")
    with pytest.raises(FatalConfigError):
        require_root(tmp_path / "missing", "doc root")
    with pytest.raises(FatalConfigError):
        require_root(None, "doc root")


def test_undecodable_files_are_fatal(tmp_path: Path) -> None:
    config_path = tmp_path / ".docmirror.yml"
    config_path.write_bytes(b"\xff\xfe\x00bad")
    whitelist = tmp_path / "whitelist.txt"
    whitelist.write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(FatalConfigError):
        load_config(config_path)
    with pytest.raises(FatalConfigError):
        load_whitelist(whitelist)
