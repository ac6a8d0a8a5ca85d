"""Status report and findings rendering."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader

from ..models import ExtractionError, FindingKind, LedgerStatus, MirrorFinding, OutcomeKind, ResolvedReference
from ..progress import LedgerUpdate

_TEMPLATE_NAME = "status_report.md.j2"


@dataclass(frozen=True)
class FindingLine:
    """One printable finding; sorted by path, then line."""

    path: str
    line: int
    message: str

    def render(self) -> str:
        location = f"{self.path}:{self.line}" if self.line else self.path
        return f"{location}: {self.message}"


def collect_findings(
    errors: Sequence[ExtractionError],
    findings: Sequence[MirrorFinding],
    resolved: Sequence[ResolvedReference],
    *,
    include_drifted: bool = True,
) -> List[FindingLine]:
    """Flatten every finding into a stable, sorted list."""
    lines: List[FindingLine] = []
    for error in errors:
        lines.append(FindingLine(error.doc_path, error.line, f"{error.kind}: {error.message}"))
    for finding in findings:
        if not finding.active:
            continue
        if finding.kind is FindingKind.UNDOCUMENTED:
            message = "undocumented: source directory has no Markdown in its mirror directory"
        else:
            message = "orphaned: doc directory has no source counterpart"
        lines.append(FindingLine(finding.path, 0, message))
    for item in resolved:
        message = describe_outcome(item)
        if message is None:
            continue
        if item.outcome.kind is OutcomeKind.DRIFTED and not include_drifted:
            continue
        lines.append(FindingLine(item.reference.doc_path, item.reference.doc_line, message))
    lines.sort(key=lambda line: (line.path, line.line, line.message))
    return lines


def describe_outcome(item: ResolvedReference) -> str | None:
    """Return a finding message for non-verified outcomes, ``None`` for verified ones."""
    reference = item.reference
    outcome = item.outcome
    if outcome.kind is OutcomeKind.VERIFIED:
        return None
    if outcome.kind is OutcomeKind.DRIFTED:
        suggested = outcome.suggested_line
        if reference.end_line is not None and suggested is not None:
            suggested_text = f"{suggested}-{suggested + reference.end_line - reference.start_line}"
        else:
            suggested_text = str(suggested)
        message = f"drifted: {reference.location} -> {reference.target_path}:{suggested_text}"
        if outcome.low_confidence:
            message += " (low confidence"
            if outcome.candidates:
                message += "; also matches " + ", ".join(str(line) for line in outcome.candidates)
            message += ")"
        return message
    if outcome.kind is OutcomeKind.MISSING:
        return f"missing: {reference.location} ({outcome.detail})" if outcome.detail else f"missing: {reference.location}"
    return f"source unreadable: {reference.location}"


class StatusReport:
    """Renders the Markdown status table the planning files used to keep by hand."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories = []
        if templates_dir is not None:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        self._env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render(self, update: LedgerUpdate) -> str:
        rows = []
        for path in sorted(update.entries):
            entry = update.entries[path]
            outcomes = entry.outcomes
            refs = "/".join(
                str(outcomes.get(kind.value, 0))
                for kind in (
                    OutcomeKind.VERIFIED,
                    OutcomeKind.DRIFTED,
                    OutcomeKind.MISSING,
                    OutcomeKind.SOURCE_UNREADABLE,
                )
            )
            rows.append(
                {
                    "source_path": path,
                    "source_lines": entry.source_lines,
                    "doc_lines": entry.doc_lines,
                    "status": entry.status.value,
                    "pending": entry.promotion_pending,
                    "refs": refs,
                }
            )
        template = self._env.get_template(_TEMPLATE_NAME)
        return (
            template.render(
                summary=self.summary(update),
                rows=rows,
                regressions=sorted(update.regressions, key=lambda change: change.source_path),
                held=sorted(update.held, key=lambda change: change.source_path),
                removed=update.removed,
            ).rstrip()
            + "\n"
        )

    @staticmethod
    def summary(update: LedgerUpdate) -> Dict[str, object]:
        total = len(update.entries)
        complete = update.count(LedgerStatus.COMPLETE)
        return {
            "total": total,
            "complete": complete,
            "stub": update.count(LedgerStatus.STUB),
            "undocumented": update.count(LedgerStatus.UNDOCUMENTED),
            "percent_complete": round(100 * complete / total, 1) if total else 100.0,
        }


__all__ = ["FindingLine", "StatusReport", "collect_findings", "describe_outcome"]
