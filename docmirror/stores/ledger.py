"""Persistent, versioned store for progress ledger entries."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..config import FatalConfigError
from ..logging import get_logger
from ..models import LedgerEntry, LedgerStatus
from .atomic import atomic_write_text

LEDGER_VERSION = 1

logger = get_logger("ledger")


class LedgerError(FatalConfigError):
    """Raised when a prior ledger exists but cannot be trusted."""


class LedgerStore:
    """Loads and atomically rewrites ledger entries keyed by source path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Dict[str, LedgerEntry]:
        """Return the prior entries; a missing file is an empty ledger."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No prior ledger at %s", self.path)
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            raise LedgerError(f"Unable to read ledger {self.path}: {exc}") from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LedgerError(f"Ledger {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger {self.path} must contain a JSON object")
        version = data.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            raise LedgerError(f"Ledger {self.path} has no format version")
        if version > LEDGER_VERSION:
            raise LedgerError(
                f"Ledger {self.path} uses format version {version}; this docmirror supports up to {LEDGER_VERSION}"
            )
        entries = data.get("entries")
        if not isinstance(entries, dict):
            raise LedgerError(f"Ledger {self.path} has no entries mapping")

        loaded: Dict[str, LedgerEntry] = {}
        for key, payload in entries.items():
            entry = _entry_from_dict(key, payload)
            if entry is None:
                logger.warning("Skipping malformed ledger entry %r", key)
                continue
            loaded[key] = entry
        return loaded

    def render(self, entries: Mapping[str, LedgerEntry]) -> str:
        payload = {
            "version": LEDGER_VERSION,
            "entries": {path: _entry_to_dict(entries[path]) for path in sorted(entries)},
        }
        return json.dumps(payload, indent=2, sort_keys=True) + "\n"

    def persist(self, entries: Mapping[str, LedgerEntry]) -> None:
        """Rewrite the ledger atomically."""
        atomic_write_text(self.path, self.render(entries))
        logger.debug("Ledger with %d entries written to %s", len(entries), self.path)


def _entry_to_dict(entry: LedgerEntry) -> Dict[str, object]:
    return {
        "status": entry.status.value,
        "source_lines": entry.source_lines,
        "doc_lines": entry.doc_lines,
        "doc_paths": list(entry.doc_paths),
        "doc_hash": entry.doc_hash,
        "outcomes": dict(sorted(entry.outcomes.items())),
        "promotion_pending": entry.promotion_pending,
        "updated_at": entry.updated_at,
    }


def _entry_from_dict(key: object, payload: object) -> Optional[LedgerEntry]:
    if not isinstance(key, str) or not isinstance(payload, dict):
        return None
    try:
        status = LedgerStatus(payload.get("status"))
    except ValueError:
        return None
    source_lines = payload.get("source_lines")
    doc_lines = payload.get("doc_lines", 0)
    if not isinstance(source_lines, int) or not isinstance(doc_lines, int):
        return None
    doc_paths = payload.get("doc_paths", [])
    if not isinstance(doc_paths, list) or not all(isinstance(item, str) for item in doc_paths):
        return None
    doc_hash = payload.get("doc_hash")
    if doc_hash is not None and not isinstance(doc_hash, str):
        return None
    outcomes = payload.get("outcomes", {})
    if not isinstance(outcomes, dict):
        outcomes = {}
    updated_at = payload.get("updated_at")
    return LedgerEntry(
        source_path=key,
        status=status,
        source_lines=source_lines,
        doc_lines=doc_lines,
        doc_paths=list(doc_paths),
        doc_hash=doc_hash,
        outcomes={str(name): int(count) for name, count in outcomes.items() if isinstance(count, int)},
        promotion_pending=bool(payload.get("promotion_pending", False)),
        updated_at=updated_at if isinstance(updated_at, str) else None,
    )


__all__ = ["LEDGER_VERSION", "LedgerError", "LedgerStore"]
