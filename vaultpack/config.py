from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # pyright: ignore[reportMissingImports]

CONFIG_FILENAMES: tuple[str, ...] = (".vaultpack.toml", "vaultpack.toml")
PYPROJECT_FILENAME = "pyproject.toml"

DEFAULT_EXCLUDES: list[str] = ["**/.vlt", "**/.vltignore"]

JCR_ROOT_CANDIDATES: tuple[str, ...] = (
    "src/main/content/jcr_root",
    "src/main/jcr_root",
)
META_INF_VAULT_CANDIDATES: tuple[str, ...] = (
    "src/main/content/META-INF/vault",
    "src/main/META-INF/vault",
)


@dataclass
class Config:
    # Archive is written to <output_directory>/<final_name>.zip
    final_name: str = "package"
    output_directory: str = "target"
    # Source locations; None means the first existing conventional candidate.
    jcr_root: str | None = None
    meta_inf_vault: str | None = None
    work_directory: str = "target/vault-work"
    # Workspace filter; default is <work_directory>/META-INF/vault/filter.xml.
    # Explicit filter_roots take precedence over the filter document.
    filter_file: str | None = None
    filter_roots: list[str] = field(default_factory=list)
    # Sub-path below jcr_root where the source tree lands (e.g. "/apps").
    prefix: str = ""
    # destination path in the archive -> source file
    embedded: dict[str, str] = field(default_factory=dict)
    excludes: list[str] = field(default_factory=lambda: DEFAULT_EXCLUDES.copy())
    add_default_excludes: bool = True
    fail_on_uncovered_source_files: bool = False
    fail_on_duplicate_entries: bool = True
    # Warn about filter roots that match nothing in the source tree.
    report_unresolved_roots: bool = False
    # Token substitution
    enable_meta_inf_filtering: bool = False
    enable_jcr_root_filtering: bool = False
    filter_properties: dict[str, str] = field(default_factory=dict)
    delimiters: list[str] = field(default_factory=list)
    use_default_delimiters: bool = True
    escape_string: str | None = None
    escaped_backslashes_in_file_path: bool = False
    non_filtered_file_extensions: list[str] = field(default_factory=list)
    support_multi_line_filtering: bool = False
    resource_encoding: str = "utf-8"
    # ISO-8601 timestamp stamped on every archive entry (default: ZIP epoch).
    output_timestamp: str | None = None


def _find_config_path(root: Path) -> Path | None:
    root = root.resolve()
    for name in CONFIG_FILENAMES:
        p = root / name
        if p.exists():
            return p
    pyproject = root / PYPROJECT_FILENAME
    if pyproject.exists():
        return pyproject
    return None


def _extract_section(data: Any, *, from_pyproject: bool) -> dict[str, Any]:
    section: dict[str, Any] = {}
    if not isinstance(data, dict):
        return section

    if not from_pyproject:
        # Preferred for dedicated config files: [vaultpack]
        vp = data.get("vaultpack")
        if isinstance(vp, dict):
            return vp

    # Supported in all files; required for pyproject.toml.
    tool = data.get("tool")
    if isinstance(tool, dict):
        vp2 = tool.get("vaultpack")
        if isinstance(vp2, dict):
            return vp2

    return section


def _opt_str(value: Any, default: str | None) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _str_list(value: Any, default: list[str]) -> list[str]:
    if isinstance(value, list):
        return [str(x) for x in value]
    return default


def _str_map(value: Any, default: dict[str, str]) -> dict[str, str]:
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    return default


def load_config(root: Path) -> Config:  # noqa: C901
    cfg_path = _find_config_path(root)
    if cfg_path is None:
        return Config()

    data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    section = _extract_section(data, from_pyproject=cfg_path.name == PYPROJECT_FILENAME)
    cfg = Config()

    cfg.final_name = _opt_str(section.get("final_name"), cfg.final_name) or cfg.final_name
    cfg.output_directory = (
        _opt_str(section.get("output_directory"), cfg.output_directory)
        or cfg.output_directory
    )
    cfg.jcr_root = _opt_str(section.get("jcr_root"), cfg.jcr_root)
    cfg.meta_inf_vault = _opt_str(section.get("meta_inf_vault"), cfg.meta_inf_vault)
    cfg.work_directory = (
        _opt_str(section.get("work_directory"), cfg.work_directory)
        or cfg.work_directory
    )
    cfg.filter_file = _opt_str(section.get("filter_file"), cfg.filter_file)
    cfg.filter_roots = _str_list(section.get("filter_roots"), cfg.filter_roots)

    prefix = section.get("prefix", cfg.prefix)
    if isinstance(prefix, str):
        cfg.prefix = prefix.strip()

    cfg.embedded = _str_map(section.get("embedded"), cfg.embedded)

    exc = section.get("excludes", section.get("exclude"))
    cfg.excludes = _str_list(exc, cfg.excludes)
    cfg.add_default_excludes = bool(
        section.get("add_default_excludes", cfg.add_default_excludes)
    )

    cfg.fail_on_uncovered_source_files = bool(
        section.get("fail_on_uncovered_source_files", cfg.fail_on_uncovered_source_files)
    )
    cfg.fail_on_duplicate_entries = bool(
        section.get("fail_on_duplicate_entries", cfg.fail_on_duplicate_entries)
    )
    cfg.report_unresolved_roots = bool(
        section.get("report_unresolved_roots", cfg.report_unresolved_roots)
    )

    cfg.enable_meta_inf_filtering = bool(
        section.get("enable_meta_inf_filtering", cfg.enable_meta_inf_filtering)
    )
    cfg.enable_jcr_root_filtering = bool(
        section.get("enable_jcr_root_filtering", cfg.enable_jcr_root_filtering)
    )
    cfg.filter_properties = _str_map(
        section.get("filter_properties"), cfg.filter_properties
    )
    cfg.delimiters = _str_list(section.get("delimiters"), cfg.delimiters)
    cfg.use_default_delimiters = bool(
        section.get("use_default_delimiters", cfg.use_default_delimiters)
    )
    esc = section.get("escape_string", cfg.escape_string)
    if isinstance(esc, str) and esc:
        cfg.escape_string = esc
    cfg.escaped_backslashes_in_file_path = bool(
        section.get(
            "escaped_backslashes_in_file_path", cfg.escaped_backslashes_in_file_path
        )
    )
    cfg.non_filtered_file_extensions = _str_list(
        section.get("non_filtered_file_extensions"), cfg.non_filtered_file_extensions
    )
    cfg.support_multi_line_filtering = bool(
        section.get("support_multi_line_filtering", cfg.support_multi_line_filtering)
    )
    cfg.resource_encoding = (
        _opt_str(section.get("resource_encoding"), cfg.resource_encoding)
        or cfg.resource_encoding
    )

    ts = section.get("output_timestamp", cfg.output_timestamp)
    if isinstance(ts, datetime):
        cfg.output_timestamp = ts.isoformat()
    elif isinstance(ts, str):
        try:
            parse_timestamp(ts)
            cfg.output_timestamp = ts.strip()
        except ValueError:
            pass

    return cfg


def parse_timestamp(value: str | None) -> datetime | None:
    """ISO-8601 text or integer epoch seconds; naive values are taken as UTC."""
    if value is None or not str(value).strip():
        return None
    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _first_existing(root: Path, candidates: tuple[str, ...]) -> Path | None:
    for rel in candidates:
        p = root / rel
        if p.is_dir():
            return p
    return None


def _resolve(root: Path, value: str) -> Path:
    p = Path(value)
    return p if p.is_absolute() else root / p


def resolve_jcr_root(cfg: Config, root: Path) -> Path | None:
    if cfg.jcr_root:
        return _resolve(root, cfg.jcr_root)
    return _first_existing(root, JCR_ROOT_CANDIDATES)


def resolve_meta_inf_vault(cfg: Config, root: Path) -> Path | None:
    if cfg.meta_inf_vault:
        p = _resolve(root, cfg.meta_inf_vault)
        return p if p.is_dir() else None
    return _first_existing(root, META_INF_VAULT_CANDIDATES)


def resolve_work_directory(cfg: Config, root: Path) -> Path:
    return _resolve(root, cfg.work_directory)


def resolve_output_directory(cfg: Config, root: Path) -> Path:
    return _resolve(root, cfg.output_directory)


def resolve_embedded(cfg: Config, root: Path) -> dict[str, Path]:
    return {dest: _resolve(root, src) for dest, src in cfg.embedded.items()}
