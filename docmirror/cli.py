"""CLI entrypoints for docmirror commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import FatalConfigError, apply_overrides, load_config
from .logging import configure_logging, get_logger
from .orchestrator import Orchestrator, ReportOutcome
from .postproc.report import collect_findings

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FATAL = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_root_options(parser: argparse.ArgumentParser, *, source: bool = True) -> None:
    if source:
        parser.add_argument(
            "--source-root",
            help="Source tree the documentation mirrors (env: DOCMIRROR_SOURCE_ROOT).",
        )
    parser.add_argument(
        "--doc-root",
        help="Documentation tree root (env: DOCMIRROR_DOC_ROOT).",
    )


def _add_whitelist_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--whitelist",
        help="Newline-delimited list of documentation-only paths (env: DOCMIRROR_WHITELIST).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docmirror",
        description="Keep a documentation tree mirrored to its source tree and its code citations accurate.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        help="Path to .docmirror.yml (defaults to ./.docmirror.yml when present).",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Worker threads for the scan phase (env: DOCMIRROR_WORKERS; defaults to CPU count).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Check citations and the doc/source mirror; print findings.",
    )
    _add_verbose_option(validate_parser, suppress_default=True)
    _add_root_options(validate_parser)
    _add_whitelist_option(validate_parser)

    nav_parser = subparsers.add_parser(
        "nav",
        help="Write the navigation artifact for the documentation site.",
    )
    _add_verbose_option(nav_parser, suppress_default=True)
    _add_root_options(nav_parser, source=False)
    nav_parser.add_argument(
        "--output",
        default="nav.yml",
        help="Output path; .yml/.yaml writes MkDocs nav YAML, anything else a JSON tree.",
    )

    report_parser = subparsers.add_parser(
        "report",
        help="Update the progress ledger and print the status table.",
    )
    _add_verbose_option(report_parser, suppress_default=True)
    _add_root_options(report_parser)
    _add_whitelist_option(report_parser)
    report_parser.add_argument(
        "--ledger",
        help="Ledger file (env: DOCMIRROR_LEDGER; defaults to .docmirror/ledger.json).",
    )
    report_parser.add_argument(
        "--table-output",
        help="Also write the Markdown status table to this path.",
    )
    report_parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit 1 on mirror findings or missing citations, not only on regressions.",
    )
    report_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the report without writing the ledger.",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for docmirror commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    configure_logging(verbose=bool(args.verbose), log_file=log_file)
    logger = get_logger("cli")

    try:
        config = load_config(Path(args.config) if args.config else None)
        config = apply_overrides(
            config,
            source_root=getattr(args, "source_root", None),
            doc_root=getattr(args, "doc_root", None),
            whitelist=getattr(args, "whitelist", None),
            ledger=getattr(args, "ledger", None),
            workers=args.workers,
        )
        orchestrator = Orchestrator(config)

        if args.command == "validate":
            return _run_validate(orchestrator)
        if args.command == "nav":
            return _run_nav(orchestrator, Path(args.output))
        if args.command == "report":
            return _run_report(
                orchestrator,
                table_output=Path(args.table_output) if args.table_output else None,
                strict=bool(args.strict),
                dry_run=bool(args.dry_run),
            )
    except FatalConfigError as exc:
        print(f"docmirror {args.command} failed: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except OSError as exc:
        logger.debug("I/O failure", exc_info=True)
        print(f"docmirror {args.command} failed: {exc}\nRun with --verbose for more details.", file=sys.stderr)
        return EXIT_FATAL
    parser.error(f"Unknown command {args.command}")  # pragma: no cover - argparse enforces choices
    return EXIT_FATAL  # pragma: no cover


def _run_validate(orchestrator: Orchestrator) -> int:
    outcome = orchestrator.run_validate()
    for line in outcome.lines:
        print(line.render())
    return EXIT_FINDINGS if outcome.has_findings else EXIT_OK


def _run_nav(orchestrator: Orchestrator, output: Path) -> int:
    outcome = orchestrator.run_nav(output)
    rel_path = _relativize(outcome.path)
    if outcome.changed:
        print(f"Navigation written to {rel_path}")
    else:
        print(f"Navigation already up to date at {rel_path}")
    return EXIT_OK


def _run_report(
    orchestrator: Orchestrator,
    *,
    table_output: Path | None,
    strict: bool,
    dry_run: bool,
) -> int:
    outcome = orchestrator.run_report(table_output=table_output, dry_run=dry_run)
    if strict:
        validation = outcome.validation
        for line in collect_findings([], validation.active_mirror_findings, validation.broken_references):
            print(line.render())
    print(outcome.table, end="")
    return _report_exit_code(outcome, strict=strict)


def _report_exit_code(outcome: ReportOutcome, *, strict: bool) -> int:
    if outcome.has_regressions:
        return EXIT_FINDINGS
    if strict and (outcome.validation.active_mirror_findings or outcome.validation.broken_references):
        return EXIT_FINDINGS
    return EXIT_OK


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
