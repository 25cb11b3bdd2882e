from __future__ import annotations

import enum
import logging
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from .archiver import ContentPackageArchiver
from .config import (
    DEFAULT_EXCLUDES,
    Config,
    parse_timestamp,
    resolve_embedded,
    resolve_jcr_root,
    resolve_meta_inf_vault,
    resolve_output_directory,
    resolve_work_directory,
)
from .coverage import find_uncovered
from .discover import escape_pattern, scan_directory
from .errors import ConflictError, CoverageError
from .filters import default_filter_path, load_filter_rules, rules_from_roots
from .model import (
    ArchiveEntry,
    BuildReport,
    CoverageResult,
    DuplicateRecord,
    FileInclusion,
    FileSetEntry,
    FilterRule,
    Inclusion,
    Origin,
)
from .paths import FILTER_XML, META_DIR, META_INF, ROOT_DIR, join, normalize
from .resolver import resolve_filter_roots
from .resource_filter import ResourceFilter, TokenFilter
from .tracker import DuplicateTracker, severity

logger = logging.getLogger(__name__)

PACKAGE_EXT = ".zip"
FILTERED_FILES_DIR = "filteredFiles"


class BuildState(enum.Enum):
    INIT = "init"
    COLLECT_METADATA = "collect-metadata"
    COLLECT_WORKING = "collect-working"
    COLLECT_EMBEDDED = "collect-embedded"
    COLLECT_SOURCE_TREE = "collect-source-tree"
    VALIDATE_DUPLICATES = "validate-duplicates"
    VALIDATE_COVERAGE = "validate-coverage"
    FINALIZE = "finalize"
    FAILED = "failed"


_PIPELINE: tuple[BuildState, ...] = (
    BuildState.COLLECT_METADATA,
    BuildState.COLLECT_WORKING,
    BuildState.COLLECT_EMBEDDED,
    BuildState.COLLECT_SOURCE_TREE,
    BuildState.VALIDATE_DUPLICATES,
    BuildState.VALIDATE_COVERAGE,
    BuildState.FINALIZE,
)


@dataclass(frozen=True)
class PackageSources:
    work_dir: Path
    jcr_root: Path | None = None
    meta_inf_vault: Path | None = None
    embedded: Mapping[str, Path] = field(default_factory=dict)
    filter_rules: Sequence[FilterRule] = ()


@dataclass(frozen=True)
class BuildOptions:
    prefix: str = ""
    excludes: tuple[str, ...] = tuple(DEFAULT_EXCLUDES)
    add_default_excludes: bool = True
    fail_on_duplicate_entries: bool = True
    fail_on_uncovered_source_files: bool = False
    report_unresolved_roots: bool = False
    enable_jcr_root_filtering: bool = False
    enable_meta_inf_filtering: bool = False
    # Scratch directory for filtered copies; filtering is skipped without one.
    filtered_dir: Path | None = None
    # None builds the plan without writing an archive.
    output: Path | None = None
    timestamp: datetime | None = None


@dataclass
class BuildResult:
    state: BuildState
    entries: list[ArchiveEntry]
    inclusions: list[Inclusion]
    duplicates: list[DuplicateRecord]
    overlaps: list[DuplicateRecord]
    unresolved: list[FilterRule]
    coverage: CoverageResult | None
    report: BuildReport
    archive_entries: dict[str, Path | None]
    output: Path | None = None


def _under(path: str, top: str) -> bool:
    return path == top or path.startswith(top + "/")


class PackageBuilder:
    """Assembles one content package.

    Origins are collected in precedence order (metadata directory, working
    directory, embedded files, filtered source tree) and every destination is
    claimed in the duplicate tracker before it reaches the archiver, so the
    first claim of a path is the one kept. Strict duplicate or coverage policy
    raises at the matching validation state and leaves the build FAILED.
    """

    def __init__(
        self,
        sources: PackageSources,
        options: BuildOptions | None = None,
        *,
        archiver: ContentPackageArchiver | None = None,
        resource_filter: ResourceFilter | None = None,
    ) -> None:
        self.sources = sources
        self.options = options or BuildOptions()
        self.archiver = archiver or ContentPackageArchiver()
        self.resource_filter = resource_filter
        self.tracker = DuplicateTracker()
        self.report = BuildReport()
        self.state = BuildState.INIT

        self.inclusions: list[Inclusion] = []
        self.duplicates: list[DuplicateRecord] = []
        self.overlaps: list[DuplicateRecord] = []
        self.unresolved: list[FilterRule] = []
        self.coverage: CoverageResult | None = None
        self.output: Path | None = None

    @property
    def source_prefix(self) -> str:
        return normalize(join(ROOT_DIR, self.options.prefix))

    def build(self) -> BuildResult:
        steps = {
            BuildState.COLLECT_METADATA: self._collect_metadata,
            BuildState.COLLECT_WORKING: self._collect_working,
            BuildState.COLLECT_EMBEDDED: self._collect_embedded,
            BuildState.COLLECT_SOURCE_TREE: self._collect_source_tree,
            BuildState.VALIDATE_DUPLICATES: self._validate_duplicates,
            BuildState.VALIDATE_COVERAGE: self._validate_coverage,
            BuildState.FINALIZE: self._finalize,
        }
        if self.state is not BuildState.INIT:
            raise RuntimeError("PackageBuilder.build() may only run once")
        try:
            self._prepare_filtering()
            for state in _PIPELINE:
                self.state = state
                steps[state]()
        except Exception:
            self.state = BuildState.FAILED
            raise
        return self.result()

    def result(self) -> BuildResult:
        return BuildResult(
            state=self.state,
            entries=self.tracker.entries(),
            inclusions=list(self.inclusions),
            duplicates=list(self.duplicates),
            overlaps=list(self.overlaps),
            unresolved=list(self.unresolved),
            coverage=self.coverage,
            report=self.report,
            archive_entries=self.archiver.files,
            output=self.output,
        )

    # -- collection -------------------------------------------------------

    def _file_set(
        self, directory: Path, prefix: str, extra_excludes: Sequence[str] = ()
    ) -> FileSetEntry:
        return FileSetEntry(
            directory=directory,
            prefix=prefix,
            excludes=(*self.options.excludes, *extra_excludes),
            use_default_excludes=self.options.add_default_excludes,
        )

    def _collect_metadata(self) -> None:
        meta = self.sources.meta_inf_vault
        if meta is None:
            return
        # filter.xml always comes from the working directory
        fs = self._file_set(meta, META_DIR + "/", [FILTER_XML])
        self._add_claimed_file_set(fs, protected=True, origin="metadata")

    def _collect_working(self) -> None:
        fs = self._file_set(self.sources.work_dir, "")
        self._add_claimed_file_set(fs, protected=True, origin="working")

    def _collect_embedded(self) -> None:
        for destination, source in self.sources.embedded.items():
            dest = normalize(destination).lstrip("/")
            claim = self.tracker.claim(dest, source, True, "embedded")
            if claim.record is not None:
                self._record_overlap(claim.record)
            if not claim.accepted:
                continue
            self._add_file(source, dest)

    def _collect_source_tree(self) -> None:
        jcr_root = self.sources.jcr_root
        if jcr_root is None or not jcr_root.exists():
            return
        logger.info("Packaging content from %s", jcr_root)

        embedded = {normalize(d).lstrip("/") for d in self.sources.embedded}
        self.inclusions = resolve_filter_roots(
            jcr_root,
            self.sources.filter_rules,
            self.source_prefix,
            embedded,
            excludes=self.options.excludes,
            use_default_excludes=self.options.add_default_excludes,
            unresolved=self.unresolved,
        )
        for rule in self.unresolved:
            if self.options.report_unresolved_roots:
                self._warn(
                    f"Filter root '{rule.root}' does not match anything "
                    f"below '{jcr_root}'"
                )

        for inclusion in self.inclusions:
            if isinstance(inclusion, FileSetEntry):
                self._add_claimed_file_set(inclusion, protected=False, origin="source")
            else:
                self._add_claimed_file(inclusion)

    def _add_claimed_file(self, inclusion: FileInclusion) -> None:
        claim = self.tracker.claim(
            inclusion.destination, inclusion.source, False, "source"
        )
        if claim.record is not None:
            self.duplicates.append(claim.record)
        if not claim.accepted:
            return
        # ancestor companions are packaged as they are on disk
        self._add_file(
            inclusion.source,
            inclusion.destination,
            filtered=inclusion.kind != "ancestor",
        )

    def _add_claimed_file_set(
        self, fs: FileSetEntry, *, protected: bool, origin: Origin
    ) -> None:
        disc = scan_directory(
            fs.directory,
            includes=fs.includes,
            excludes=fs.excludes,
            use_default_excludes=fs.use_default_excludes,
        )
        shadowed: list[str] = []
        for rel in disc.files:
            dest = join(fs.prefix, rel)
            claim = self.tracker.claim(dest, fs.directory / rel, protected, origin)
            record = claim.record
            if record is None:
                continue
            if protected:
                self._record_overlap(record)
            else:
                self.duplicates.append(record)
            shadowed.append(rel)

        if shadowed:
            # the earlier claim keeps the path
            fs = replace(
                fs, excludes=(*fs.excludes, *(escape_pattern(r) for r in shadowed))
            )
        self._add_file_set(fs)

    def _record_overlap(self, record: DuplicateRecord) -> None:
        self.overlaps.append(record)
        if severity(record.destination) == "info":
            logger.info(record.message())
            self.report.infos.append(record.message())
        else:
            self._warn(record.message())

    # -- archiver / filtering --------------------------------------------

    def _prepare_filtering(self) -> None:
        opts = self.options
        if not (opts.enable_jcr_root_filtering or opts.enable_meta_inf_filtering):
            return
        if opts.filtered_dir is None:
            logger.debug("No filtered directory configured; filtering disabled")
            return
        if self.resource_filter is None:
            self.resource_filter = TokenFilter()
        if opts.filtered_dir.exists():
            shutil.rmtree(opts.filtered_dir)

    def _filtering_for(self, destination: str) -> tuple[ResourceFilter, Path] | None:
        """Filter and scratch directory for ``destination``, or None when unfiltered."""
        opts = self.options
        resource_filter = self.resource_filter
        filtered_dir = opts.filtered_dir
        if filtered_dir is None or resource_filter is None:
            return None
        dest = destination.strip("/")
        if (_under(dest, ROOT_DIR) and opts.enable_jcr_root_filtering) or (
            _under(dest, META_INF) and opts.enable_meta_inf_filtering
        ):
            return resource_filter, filtered_dir
        return None

    def _add_file(self, source: Path, destination: str, *, filtered: bool = True) -> None:
        filtering = self._filtering_for(destination) if filtered else None
        if filtering is not None:
            resource_filter, filtered_dir = filtering
            logger.info("Apply filtering to %s", source)
            parent = destination.rpartition("/")[0]
            source = resource_filter.filter_file(source, filtered_dir / parent)
        self.archiver.add_file(source, destination)

    def _add_file_set(self, fs: FileSetEntry) -> None:
        filtering = self._filtering_for(fs.prefix) if fs.prefix else None
        if filtering is not None:
            resource_filter, filtered_dir = filtering
            logger.info("Apply filtering to FileSet below %s", fs.directory)
            target = filtered_dir / fs.prefix.strip("/")
            fs = replace(fs, directory=resource_filter.filter_directory(fs, target))
        self.archiver.add_file_set(fs)

    # -- validation -------------------------------------------------------

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.report.warnings.append(message)

    def _error(self, message: str) -> None:
        logger.error(message)
        self.report.errors.append(message)

    def _validate_duplicates(self) -> None:
        strict = self.options.fail_on_duplicate_entries
        for record in self.duplicates:
            if strict:
                self._error(record.message())
            else:
                self._warn(record.message())
        if strict and self.duplicates:
            raise ConflictError(self.duplicates)

    def _validate_coverage(self) -> None:
        jcr_root = self.sources.jcr_root
        if jcr_root is None or not jcr_root.exists():
            return
        self.coverage = find_uncovered(
            jcr_root,
            self.options.excludes,
            self.source_prefix,
            self.archiver.files.keys(),
            use_default_excludes=self.options.add_default_excludes,
        )
        strict = self.options.fail_on_uncovered_source_files
        for path in self.coverage.uncovered_files:
            message = (
                f"File '{path}' not covered by a filter rule and therefore "
                "not contained in the resulting package"
            )
            if strict:
                self._error(message)
            else:
                self._warn(message)
        if strict and self.coverage.uncovered_files:
            raise CoverageError(self.coverage.uncovered_files)

    def _finalize(self) -> None:
        if self.options.output is None:
            return
        self.output = self.archiver.create_archive(
            self.options.output, timestamp=self.options.timestamp
        )


def sources_from_config(cfg: Config, root: Path) -> PackageSources:
    work_dir = resolve_work_directory(cfg, root)
    if cfg.filter_roots:
        rules = rules_from_roots(cfg.filter_roots)
    else:
        filter_path = (
            root / cfg.filter_file if cfg.filter_file else default_filter_path(work_dir)
        )
        rules = load_filter_rules(filter_path)
    return PackageSources(
        work_dir=work_dir,
        jcr_root=resolve_jcr_root(cfg, root),
        meta_inf_vault=resolve_meta_inf_vault(cfg, root),
        embedded=resolve_embedded(cfg, root),
        filter_rules=rules,
    )


def options_from_config(cfg: Config, root: Path, *, write: bool = True) -> BuildOptions:
    output_dir = resolve_output_directory(cfg, root)
    return BuildOptions(
        prefix=cfg.prefix,
        excludes=tuple(cfg.excludes),
        add_default_excludes=cfg.add_default_excludes,
        fail_on_duplicate_entries=cfg.fail_on_duplicate_entries,
        fail_on_uncovered_source_files=cfg.fail_on_uncovered_source_files,
        report_unresolved_roots=cfg.report_unresolved_roots,
        enable_jcr_root_filtering=cfg.enable_jcr_root_filtering,
        enable_meta_inf_filtering=cfg.enable_meta_inf_filtering,
        filtered_dir=output_dir / FILTERED_FILES_DIR if write else None,
        output=output_dir / (cfg.final_name + PACKAGE_EXT) if write else None,
        timestamp=parse_timestamp(cfg.output_timestamp),
    )


def resource_filter_from_config(cfg: Config) -> TokenFilter:
    return TokenFilter(
        properties=cfg.filter_properties,
        delimiters=cfg.delimiters,
        use_default_delimiters=cfg.use_default_delimiters,
        escape_string=cfg.escape_string,
        escaped_backslashes_in_file_path=cfg.escaped_backslashes_in_file_path,
        non_filtered_file_extensions=cfg.non_filtered_file_extensions,
        multi_line=cfg.support_multi_line_filtering,
        encoding=cfg.resource_encoding,
    )


def build_package(cfg: Config, root: Path, *, write: bool = True) -> BuildResult:
    """Build (or, with ``write=False``, only plan) the package described by ``cfg``."""
    root = root.resolve()
    builder = PackageBuilder(
        sources_from_config(cfg, root),
        options_from_config(cfg, root, write=write),
        resource_filter=resource_filter_from_config(cfg),
    )
    return builder.build()
