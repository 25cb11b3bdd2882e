from __future__ import annotations

import argparse
import importlib.metadata as importlib_metadata
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import Config, load_config, parse_timestamp
from .errors import PackageError
from .model import FileInclusion
from .packager import BuildResult, build_package

_HANDLER_NAME = "vaultpack-cli"


def _vaultpack_version() -> str:
    try:
        return importlib_metadata.version("vaultpack")
    except importlib_metadata.PackageNotFoundError:
        return "0+unknown"


def _add_build_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "root",
        type=Path,
        nargs="?",
        default=Path("."),
        help="Project directory holding the config and sources (default: .)",
    )
    p.add_argument(
        "--jcr-root",
        default=None,
        help="Content source tree (default: src/main/content/jcr_root or "
        "src/main/jcr_root)",
    )
    p.add_argument(
        "--meta-inf-vault",
        default=None,
        help="Metadata directory copied to META-INF/vault/",
    )
    p.add_argument(
        "--work-dir",
        default=None,
        help="Generated working directory added at the archive root",
    )
    p.add_argument(
        "--filter-file",
        default=None,
        help="Workspace filter document (default: <work-dir>/META-INF/vault/filter.xml)",
    )
    p.add_argument(
        "--filter-root",
        action="append",
        default=None,
        help="Filter root (repeatable; overrides the filter document)",
    )
    p.add_argument(
        "--prefix",
        default=None,
        help="Path below jcr_root where the source tree lands",
    )
    p.add_argument(
        "--embed",
        action="append",
        default=None,
        metavar="DEST=SRC",
        help="Embed SRC at archive path DEST (repeatable)",
    )
    p.add_argument(
        "--exclude", action="append", default=None, help="Exclude glob (repeatable)"
    )
    p.add_argument(
        "--default-excludes",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Apply the VCS/OS default excludes (default: on via config)",
    )
    p.add_argument(
        "--fail-on-duplicate-entries",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Fail when a path is added more than once (default: on via config)",
    )
    p.add_argument(
        "--fail-on-uncovered-source-files",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Fail when source files are not covered by a filter root "
        "(default: off via config)",
    )
    p.add_argument(
        "--report-unresolved-roots",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Warn about filter roots that match nothing in the source tree",
    )
    p.add_argument(
        "--enable-jcr-root-filtering",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Substitute tokens in files below jcr_root",
    )
    p.add_argument(
        "--enable-meta-inf-filtering",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Substitute tokens in files below META-INF",
    )
    p.add_argument(
        "-D",
        "--property",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Filtering property (repeatable)",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="More logging (-v info, -vv debug)",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vaultpack",
        description="Build deterministic content-package archives from a source tree.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"vaultpack {_vaultpack_version()}",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    package = sub.add_parser("package", help="Build the content package archive.")
    _add_build_arguments(package)
    package.add_argument(
        "-o",
        "--output-directory",
        default=None,
        help="Directory for the archive (default: config 'output_directory' or target)",
    )
    package.add_argument(
        "--final-name",
        default=None,
        help="Archive file name without .zip (default: config 'final_name')",
    )
    package.add_argument(
        "--output-timestamp",
        default=None,
        help="ISO-8601 time or epoch seconds stamped on every entry",
    )

    plan = sub.add_parser(
        "plan",
        help="Resolve filters and validate without writing an archive.",
    )
    _add_build_arguments(plan)
    plan.add_argument(
        "--json",
        action="store_true",
        help="Print the plan as JSON",
    )
    return p


def _parse_pairs(
    parser: argparse.ArgumentParser, values: list[str], option: str
) -> dict[str, str]:
    out: dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            parser.error(f"{option}: expected KEY=VALUE, got {raw!r}")
        out[key.strip()] = value.strip()
    return out


def _apply_cli_overrides(  # noqa: C901
    parser: argparse.ArgumentParser, cfg: Config, args: argparse.Namespace
) -> Config:
    changes: dict[str, object] = {}
    if args.jcr_root is not None:
        changes["jcr_root"] = args.jcr_root
    if args.meta_inf_vault is not None:
        changes["meta_inf_vault"] = args.meta_inf_vault
    if args.work_dir is not None:
        changes["work_directory"] = args.work_dir
    if args.filter_file is not None:
        changes["filter_file"] = args.filter_file
    if args.filter_root is not None:
        changes["filter_roots"] = [str(r) for r in args.filter_root]
    if args.prefix is not None:
        changes["prefix"] = args.prefix
    if args.embed is not None:
        changes["embedded"] = {
            **cfg.embedded,
            **_parse_pairs(parser, args.embed, "--embed"),
        }
    if args.exclude is not None:
        changes["excludes"] = [*cfg.excludes, *args.exclude]
    if args.default_excludes is not None:
        changes["add_default_excludes"] = bool(args.default_excludes)
    if args.fail_on_duplicate_entries is not None:
        changes["fail_on_duplicate_entries"] = bool(args.fail_on_duplicate_entries)
    if args.fail_on_uncovered_source_files is not None:
        changes["fail_on_uncovered_source_files"] = bool(
            args.fail_on_uncovered_source_files
        )
    if args.report_unresolved_roots is not None:
        changes["report_unresolved_roots"] = bool(args.report_unresolved_roots)
    if args.enable_jcr_root_filtering is not None:
        changes["enable_jcr_root_filtering"] = bool(args.enable_jcr_root_filtering)
    if args.enable_meta_inf_filtering is not None:
        changes["enable_meta_inf_filtering"] = bool(args.enable_meta_inf_filtering)
    if args.property is not None:
        changes["filter_properties"] = {
            **cfg.filter_properties,
            **_parse_pairs(parser, args.property, "--property"),
        }

    if args.cmd == "package":
        if args.output_directory is not None:
            changes["output_directory"] = args.output_directory
        if args.final_name is not None:
            changes["final_name"] = args.final_name
        if args.output_timestamp is not None:
            try:
                parse_timestamp(args.output_timestamp)
            except ValueError:
                parser.error(
                    f"package: invalid --output-timestamp {args.output_timestamp!r}"
                )
            changes["output_timestamp"] = args.output_timestamp

    return replace(cfg, **changes)  # type: ignore[arg-type]


def _configure_logging(verbosity: int) -> None:
    log = logging.getLogger("vaultpack")
    for h in list(log.handlers):
        if h.get_name() == _HANDLER_NAME:
            log.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    log.addHandler(handler)
    log.setLevel(logging.WARNING - 10 * min(verbosity, 2))


def _plan_lines(result: BuildResult) -> list[str]:
    lines: list[str] = []
    for dest in sorted(result.archive_entries):
        source = result.archive_entries[dest]
        lines.append(dest if source is None else f"{dest} <- {source.as_posix()}")
    return lines


def _plan_json(result: BuildResult) -> str:
    payload = {
        "ok": result.report.ok,
        "entries": [
            {"path": dest, "source": None if src is None else src.as_posix()}
            for dest, src in sorted(result.archive_entries.items())
        ],
        "inclusions": [
            (
                {"kind": inc.kind, "source": inc.source.as_posix(), "path": inc.destination}
                if isinstance(inc, FileInclusion)
                else {
                    "kind": "fileset",
                    "source": inc.directory.as_posix(),
                    "prefix": inc.prefix,
                }
            )
            for inc in result.inclusions
        ],
        "duplicates": [
            {
                "path": d.destination,
                "first": d.first_source.as_posix(),
                "second": d.second_source.as_posix(),
            }
            for d in result.duplicates
        ],
        "uncovered": (
            [p.as_posix() for p in result.coverage.uncovered_files]
            if result.coverage is not None
            else []
        ),
        "warnings": result.report.warnings,
        "errors": result.report.errors,
    }
    return json.dumps(payload, indent=2, sort_keys=False)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    if not raw_argv:
        parser.print_help()
        return

    args = parser.parse_args(raw_argv)
    _configure_logging(args.verbose)

    root = args.root.resolve()
    if not root.is_dir():
        parser.error(f"{args.cmd}: project directory not found: {args.root}")
    cfg = _apply_cli_overrides(parser, load_config(root), args)

    write = args.cmd == "package"
    try:
        result = build_package(cfg, root, write=write)
    except PackageError as e:
        first = str(e).splitlines()[0]
        raise SystemExit(f"{args.cmd}: {first} See above errors for details.") from e

    if args.cmd == "plan":
        if args.json:
            print(_plan_json(result))
        else:
            for line in _plan_lines(result):
                print(line)
        return

    print(f"Wrote {result.output}.")
