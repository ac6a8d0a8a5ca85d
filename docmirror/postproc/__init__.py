"""Artifacts derived from a scanned documentation tree."""

from .nav import NavigationSynthesizer
from .report import FindingLine, StatusReport, collect_findings, describe_outcome

__all__ = ["FindingLine", "NavigationSynthesizer", "StatusReport", "collect_findings", "describe_outcome"]
