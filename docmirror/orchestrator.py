"""Pipeline orchestration for validate/nav/report runs."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .config import DocMirrorConfig, load_whitelist, require_root
from .logging import get_logger
from .models import (
    CodeReference,
    DocTree,
    ExtractionError,
    LedgerEntry,
    MirrorFinding,
    NavigationNode,
    OutcomeKind,
    ResolvedReference,
    SourceTree,
)
from .postproc.nav import NavigationSynthesizer
from .postproc.report import FindingLine, StatusReport, collect_findings
from .progress import LedgerUpdate, ProgressLedger
from .references.extractor import ReferenceExtractor
from .references.resolver import ReferenceResolver
from .stores.atomic import write_if_changed
from .stores.ledger import LedgerStore
from .tree_scanner import TreeScanner
from .validators.mirror import TreeMirrorValidator


@dataclass
class ValidateOutcome:
    """Result of the extraction, resolution and mirror stages."""

    source_tree: SourceTree
    doc_tree: DocTree
    references: List[CodeReference]
    resolved: List[ResolvedReference]
    errors: List[ExtractionError]
    findings: List[MirrorFinding]
    lines: List[FindingLine] = field(default_factory=list)

    @property
    def has_findings(self) -> bool:
        return bool(self.lines)

    @property
    def active_mirror_findings(self) -> List[MirrorFinding]:
        return [finding for finding in self.findings if finding.active]

    @property
    def broken_references(self) -> List[ResolvedReference]:
        return [
            item
            for item in self.resolved
            if item.outcome.kind in (OutcomeKind.MISSING, OutcomeKind.SOURCE_UNREADABLE)
        ]


@dataclass
class NavOutcome:
    """Result of a navigation synthesis run."""

    path: Path
    root: NavigationNode
    changed: bool


@dataclass
class ReportOutcome:
    """Result of a full report run."""

    validation: ValidateOutcome
    update: LedgerUpdate
    table: str
    ledger_path: Path
    written: bool

    @property
    def has_regressions(self) -> bool:
        return bool(self.update.regressions)


class Orchestrator:
    """Coordinates the map phase on a worker pool and the single-threaded reduce phase."""

    def __init__(
        self,
        config: DocMirrorConfig,
        scanner: TreeScanner | None = None,
        extractor: ReferenceExtractor | None = None,
        resolver: ReferenceResolver | None = None,
        mirror_validator: TreeMirrorValidator | None = None,
        synthesizer: NavigationSynthesizer | None = None,
        progress: ProgressLedger | None = None,
        status_report: StatusReport | None = None,
    ) -> None:
        self.config = config
        self.scanner = scanner or TreeScanner(config.exclude_paths)
        self.extractor = extractor or ReferenceExtractor(config.strip_prefixes)
        self.resolver = resolver or ReferenceResolver(config.resolver.windows, config.resolver.similarity)
        self.mirror_validator = mirror_validator or TreeMirrorValidator()
        self.synthesizer = synthesizer or NavigationSynthesizer(config.nav.pinned)
        self.progress = progress or ProgressLedger(config.thresholds)
        self.status_report = status_report or StatusReport(config.report.templates_dir)
        self.logger = get_logger("orchestrator")

    def run_validate(self) -> ValidateOutcome:
        """Scan both trees, extract and resolve citations, and check the mirror."""
        source_root = require_root(self.config.source_root, "source root")
        doc_root = require_root(self.config.doc_root, "doc root")
        whitelist = load_whitelist(self.config.whitelist)
        self.logger.info("Validating %s against %s", doc_root, source_root)

        source_tree = self.scanner.scan_source(source_root, skip=[doc_root])
        doc_tree = self.scanner.scan_docs(doc_root)
        self.logger.debug(
            "Loaded %d source files and %d doc files", len(source_tree.files), len(doc_tree.files)
        )

        workers = self.config.worker_count
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docmirror") as executor:
            references, errors = self.extractor.extract(doc_tree, source_tree, executor=executor)
            findings = self.mirror_validator.validate(source_tree, doc_tree, whitelist, executor=executor)
            resolved = self.resolver.resolve_all(references, source_tree, executor=executor)

        for finding in findings:
            if not finding.active:
                self.logger.debug(
                    "Whitelisted %s %s (%s)", finding.kind.value, finding.path, finding.whitelist_reason
                )

        outcome = ValidateOutcome(
            source_tree=source_tree,
            doc_tree=doc_tree,
            references=references,
            resolved=resolved,
            errors=errors,
            findings=findings,
        )
        outcome.lines = collect_findings(errors, findings, resolved)
        self.logger.info(
            "Checked %d citations in %d doc files: %d finding(s)",
            len(references),
            len(doc_tree.files),
            len(outcome.lines),
        )
        return outcome

    def run_nav(self, output: Path) -> NavOutcome:
        """Synthesize the navigation artifact and write it when it changed."""
        doc_root = require_root(self.config.doc_root, "doc root")
        doc_tree = self.scanner.scan_docs(doc_root)
        root = self.synthesizer.build(doc_tree)
        changed = self.synthesizer.write(root, output)
        return NavOutcome(path=output, root=root, changed=changed)

    def run_report(
        self,
        *,
        ledger_path: Optional[Path] = None,
        table_output: Optional[Path] = None,
        dry_run: bool = False,
    ) -> ReportOutcome:
        """Run the full pipeline and rewrite the ledger atomically."""
        store = LedgerStore(ledger_path or self.config.ledger_path)
        prior: Dict[str, LedgerEntry] = store.load()
        self.logger.debug("Loaded %d prior ledger entries from %s", len(prior), store.path)

        validation = self.run_validate()
        update = self.progress.update(
            validation.source_tree,
            validation.doc_tree,
            validation.resolved,
            validation.findings,
            prior,
        )
        table = self.status_report.render(update)

        written = False
        if dry_run:
            self.logger.info("Dry-run completed; ledger not written")
        else:
            store.persist(update.entries)
            written = True
            if table_output is not None:
                write_if_changed(table_output, table)
                self.logger.info("Status table written to %s", table_output)

        if update.regressions:
            self.logger.warning("%d ledger regression(s) detected", len(update.regressions))
        return ReportOutcome(
            validation=validation,
            update=update,
            table=table,
            ledger_path=store.path,
            written=written,
        )


__all__ = ["NavOutcome", "Orchestrator", "ReportOutcome", "ValidateOutcome"]
