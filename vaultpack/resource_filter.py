from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .discover import scan_directory
from .errors import FilteringError
from .model import FileSetEntry

logger = logging.getLogger(__name__)

DEFAULT_DELIMITERS: tuple[str, ...] = ("${*}", "@")
DEFAULT_NON_FILTERED_EXTENSIONS: tuple[str, ...] = ("jpg", "jpeg", "gif", "bmp", "png")


class ResourceFilter(Protocol):
    def filter_file(self, source: Path, target_dir: Path) -> Path: ...

    def filter_directory(self, file_set: FileSetEntry, target_dir: Path) -> Path: ...


def parse_delimiter(spec: str) -> tuple[str, str]:
    """``begin*end`` form; without ``*`` the token opens and closes."""
    text = spec.strip()
    if not text:
        raise ValueError("Empty filtering delimiter")
    if "*" in text:
        begin, end = text.split("*", 1)
        if not begin or not end:
            raise ValueError(f"Invalid filtering delimiter: {spec}")
        return begin, end
    return text, text


@dataclass
class TokenFilter:
    """Substitutes ``${name}``/``@name@`` style tokens from a property mapping."""

    properties: Mapping[str, str] = field(default_factory=dict)
    delimiters: Sequence[str] = ()
    use_default_delimiters: bool = True
    escape_string: str | None = None
    escaped_backslashes_in_file_path: bool = False
    non_filtered_file_extensions: Sequence[str] = ()
    multi_line: bool = False
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        specs = list(self.delimiters)
        if self.use_default_delimiters or not specs:
            specs.extend(d for d in DEFAULT_DELIMITERS if d not in specs)
        body = r"(?P<name>.+?)" if self.multi_line else r"(?P<name>[^\r\n]+?)"
        esc = re.escape(self.escape_string) if self.escape_string else None
        self._patterns: list[re.Pattern[str]] = []
        for spec in specs:
            begin, end = parse_delimiter(spec)
            prefix = rf"(?P<escape>{esc})?" if esc else ""
            self._patterns.append(
                re.compile(
                    prefix + re.escape(begin) + body + re.escape(end),
                    re.DOTALL if self.multi_line else 0,
                )
            )
        self._skip_ext = {
            e.lower().lstrip(".")
            for e in (*DEFAULT_NON_FILTERED_EXTENSIONS, *self.non_filtered_file_extensions)
        }

    def _value(self, name: str) -> str | None:
        value = self.properties.get(name.strip())
        if value is None:
            return None
        value = str(value)
        if self.escaped_backslashes_in_file_path:
            value = value.replace("\\", "\\\\")
        return value

    def filter_text(self, text: str) -> str:
        for pat in self._patterns:

            def _sub(m: re.Match[str]) -> str:
                if m.groupdict().get("escape"):
                    return m.group(0)[len(m.group("escape")) :]
                value = self._value(m.group("name"))
                return m.group(0) if value is None else value

            text = pat.sub(_sub, text)
        return text

    def _filter_one(self, source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        if source.suffix.lower().lstrip(".") in self._skip_ext:
            shutil.copyfile(source, target)
            return
        try:
            text = source.read_text(encoding=self.encoding)
        except UnicodeDecodeError as e:
            raise FilteringError(f"Cannot filter {source}: {e}") from e
        except OSError as e:
            raise FilteringError(f"Cannot read {source}: {e}") from e
        try:
            target.write_text(self.filter_text(text), encoding=self.encoding)
        except OSError as e:
            raise FilteringError(f"Cannot write filtered copy {target}: {e}") from e

    def filter_file(self, source: Path, target_dir: Path) -> Path:
        target = target_dir / source.name
        logger.debug("Filtering %s into %s", source, target)
        self._filter_one(source, target)
        return target

    def filter_directory(self, file_set: FileSetEntry, target_dir: Path) -> Path:
        disc = scan_directory(
            file_set.directory,
            includes=file_set.includes,
            excludes=file_set.excludes,
            use_default_excludes=file_set.use_default_excludes,
        )
        for rel in disc.files:
            self._filter_one(file_set.directory / rel, target_dir / rel)
        for rel in disc.empty_dirs:
            (target_dir / rel).mkdir(parents=True, exist_ok=True)
        return target_dir
