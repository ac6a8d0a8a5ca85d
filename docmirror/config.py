"""Configuration loading for docmirror (.docmirror.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".docmirror.yml"
DEFAULT_LEDGER_PATH = Path(".docmirror") / "ledger.json"
DEFAULT_WINDOWS: tuple[int, ...] = (5, 20, 100)

ENV_SOURCE_ROOT = "DOCMIRROR_SOURCE_ROOT"
ENV_DOC_ROOT = "DOCMIRROR_DOC_ROOT"
ENV_WHITELIST = "DOCMIRROR_WHITELIST"
ENV_LEDGER = "DOCMIRROR_LEDGER"
ENV_WORKERS = "DOCMIRROR_WORKERS"


class FatalConfigError(RuntimeError):
    """Raised when roots, whitelist, config or ledger make the run impossible."""


@dataclass
class Thresholds:
    """Line-count thresholds used when deriving ledger status."""

    min_doc_lines: int = 20
    min_source_lines: int = 50


@dataclass
class ResolverConfig:
    """Drift recovery window settings."""

    windows: List[int] = field(default_factory=lambda: list(DEFAULT_WINDOWS))
    similarity: float = 0.8


@dataclass
class NavConfig:
    """Navigation ordering overrides."""

    pinned: List[str] = field(default_factory=list)


@dataclass
class ReportConfig:
    """Status report rendering settings."""

    templates_dir: Optional[Path] = None


@dataclass
class DocMirrorConfig:
    """Represents the settings defined in .docmirror.yml plus runtime overrides."""

    base_dir: Path
    source_root: Optional[Path] = None
    doc_root: Optional[Path] = None
    whitelist: Optional[Path] = None
    ledger: Optional[Path] = None
    workers: Optional[int] = None
    exclude_paths: List[str] = field(default_factory=list)
    strip_prefixes: List[str] = field(default_factory=list)
    thresholds: Thresholds = field(default_factory=Thresholds)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    nav: NavConfig = field(default_factory=NavConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    @property
    def ledger_path(self) -> Path:
        return self.ledger if self.ledger is not None else self.base_dir / DEFAULT_LEDGER_PATH

    @property
    def worker_count(self) -> int:
        return self.workers or os.cpu_count() or 1


def load_config(config_path: Path | None = None) -> DocMirrorConfig:
    """Load configuration from disk.

    With no explicit path, ``.docmirror.yml`` in the working directory is used
    when present. An explicit path that does not exist is a fatal error.
    """
    if config_path is None:
        config_file = (Path.cwd() / CONFIG_FILENAME).resolve()
        if not config_file.exists():
            return DocMirrorConfig(base_dir=config_file.parent)
    else:
        config_file = _resolve_config_path(config_path)
        if not config_file.exists():
            raise FatalConfigError(f"Config file not found: {config_file}")

    base_dir = config_file.parent
    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise FatalConfigError(f"{config_file.name} must contain a mapping at the root")

    thresholds = Thresholds()
    threshold_data = _as_dict(data.get("thresholds"), "thresholds")
    if "min_doc_lines" in threshold_data:
        thresholds.min_doc_lines = _as_int(threshold_data["min_doc_lines"], "thresholds.min_doc_lines", minimum=0)
    if "min_source_lines" in threshold_data:
        thresholds.min_source_lines = _as_int(
            threshold_data["min_source_lines"], "thresholds.min_source_lines", minimum=0
        )

    resolver = ResolverConfig()
    resolver_data = _as_dict(data.get("resolver"), "resolver")
    if "windows" in resolver_data:
        windows = [_as_int(item, "resolver.windows", minimum=1) for item in _as_list(resolver_data["windows"], "resolver.windows")]
        if not windows:
            raise FatalConfigError("resolver.windows must list at least one radius")
        resolver.windows = sorted(set(windows))
    if "similarity" in resolver_data:
        similarity = _as_float(resolver_data["similarity"], "resolver.similarity")
        if not 0.0 < similarity <= 1.0:
            raise FatalConfigError("resolver.similarity must be within (0, 1]")
        resolver.similarity = similarity

    nav_data = _as_dict(data.get("nav"), "nav")
    nav = NavConfig(pinned=[_normalise_rel(item) for item in _as_str_list(nav_data.get("pinned"), "nav.pinned")])

    report_data = _as_dict(data.get("report"), "report")
    templates_dir = _as_path(report_data.get("templates_dir"), base_dir, "report.templates_dir")

    workers = None
    if data.get("workers") is not None:
        workers = _as_int(data["workers"], "workers", minimum=1)

    return DocMirrorConfig(
        base_dir=base_dir,
        source_root=_as_path(data.get("source_root"), base_dir, "source_root"),
        doc_root=_as_path(data.get("doc_root"), base_dir, "doc_root"),
        whitelist=_as_path(data.get("whitelist"), base_dir, "whitelist"),
        ledger=_as_path(data.get("ledger"), base_dir, "ledger"),
        workers=workers,
        exclude_paths=_as_str_list(data.get("exclude_paths"), "exclude_paths"),
        strip_prefixes=[
            prefix if prefix.endswith("/") else f"{prefix}/"
            for prefix in _as_str_list(data.get("strip_prefixes"), "strip_prefixes")
        ],
        thresholds=thresholds,
        resolver=resolver,
        nav=nav,
        report=ReportConfig(templates_dir=templates_dir),
    )


def apply_overrides(
    config: DocMirrorConfig,
    *,
    source_root: str | None = None,
    doc_root: str | None = None,
    whitelist: str | None = None,
    ledger: str | None = None,
    workers: int | None = None,
    environ: Mapping[str, str] | None = None,
) -> DocMirrorConfig:
    """Return a copy of ``config`` with flag and environment overrides applied.

    Precedence is flag, then environment variable, then config file.
    """
    env = os.environ if environ is None else environ
    cwd = Path.cwd()

    def _pick(flag: str | None, env_name: str, configured: Optional[Path]) -> Optional[Path]:
        if flag:
            return (cwd / Path(flag).expanduser()).resolve()
        env_value = env.get(env_name)
        if env_value:
            return (cwd / Path(env_value).expanduser()).resolve()
        return configured

    effective_workers = config.workers
    if workers is not None:
        effective_workers = _as_int(workers, "--workers", minimum=1)
    elif env.get(ENV_WORKERS):
        effective_workers = _as_int(env[ENV_WORKERS], ENV_WORKERS, minimum=1)

    return replace(
        config,
        source_root=_pick(source_root, ENV_SOURCE_ROOT, config.source_root),
        doc_root=_pick(doc_root, ENV_DOC_ROOT, config.doc_root),
        whitelist=_pick(whitelist, ENV_WHITELIST, config.whitelist),
        ledger=_pick(ledger, ENV_LEDGER, config.ledger),
        workers=effective_workers,
    )


def require_root(path: Optional[Path], label: str) -> Path:
    """Return ``path`` when it names an existing directory, else raise."""
    if path is None:
        raise FatalConfigError(f"No {label} configured (use a flag, environment variable or {CONFIG_FILENAME})")
    if not path.exists():
        raise FatalConfigError(f"{label.capitalize()} not found: {path}")
    if not path.is_dir():
        raise FatalConfigError(f"{label.capitalize()} is not a directory: {path}")
    return path


def load_whitelist(path: Optional[Path]) -> Dict[str, str]:
    """Parse a newline-delimited whitelist into ``{relative_path: reason}``.

    Blank lines and ``#`` comments are ignored; ``path  # reason`` records an
    inline reason.
    """
    if path is None:
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FatalConfigError(f"Unable to read whitelist {path}: {exc}") from exc

    entries: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        reason = "whitelisted"
        if "#" in line:
            line, comment = line.split("#", 1)
            line = line.strip()
            reason = comment.strip() or reason
        normalised = _normalise_rel(line)
        if normalised:
            entries[normalised] = reason
    return entries


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FatalConfigError(f"Unable to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise FatalConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _normalise_rel(value: str) -> str:
    cleaned = value.strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned.strip("/")


def _as_dict(value: Any, key: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FatalConfigError(f"{key} must be a mapping")
    return value


def _as_list(value: Any, key: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (str, int, float, bool)):
        return [value]
    if isinstance(value, Sequence):
        return list(value)
    raise FatalConfigError(f"{key} must be a list")


def _as_str_list(value: Any, key: str) -> List[str]:
    items = _as_list(value, key)
    result: List[str] = []
    for item in items:
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            raise FatalConfigError(f"{key} must contain only strings")
        result.append(str(item))
    return result


def _as_int(value: Any, key: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise FatalConfigError(f"{key} must be an integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError as exc:
            raise FatalConfigError(f"{key} must be an integer, got {value!r}") from exc
    else:
        raise FatalConfigError(f"{key} must be an integer")
    if minimum is not None and number < minimum:
        raise FatalConfigError(f"{key} must be >= {minimum}")
    return number


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise FatalConfigError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as exc:
            raise FatalConfigError(f"{key} must be a number, got {value!r}") from exc
    raise FatalConfigError(f"{key} must be a number")


def _as_path(value: Any, base_dir: Path, key: str) -> Optional[Path]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise FatalConfigError(f"{key} must be a non-empty path string")
    return (base_dir / Path(value).expanduser()).resolve()


__all__ = [
    "CONFIG_FILENAME",
    "DocMirrorConfig",
    "FatalConfigError",
    "NavConfig",
    "ReportConfig",
    "ResolverConfig",
    "Thresholds",
    "apply_overrides",
    "load_config",
    "load_whitelist",
    "require_root",
]
