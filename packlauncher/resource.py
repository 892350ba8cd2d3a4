"""A resource file (mod, pack, shader...) in an instance folder."""

from __future__ import annotations

import os
import re
import shutil
from enum import Enum, auto
from pathlib import Path

_DISABLED_SUFFIX = ".disabled"
_THE_PREFIX = re.compile(r"^(?:the|teh) +", re.IGNORECASE)
_SI_UNITS = ("kB", "MB", "GB", "TB")


class ResourceType(Enum):
    UNKNOWN = auto()
    ZIPFILE = auto()
    SINGLEFILE = auto()
    FOLDER = auto()
    LITEMOD = auto()


class SortType(Enum):
    ENABLED = auto()
    NAME = auto()
    DATE = auto()
    SIZE = auto()
    PROVIDER = auto()


class EnableAction(Enum):
    ENABLE = auto()
    DISABLE = auto()
    TOGGLE = auto()


def human_readable_size(size: float) -> str:
    """Format a byte count with SI units and one decimal."""
    if abs(size) < 1000:
        return f"{size:.0f} B"
    value = float(size)
    for unit in _SI_UNITS:
        value /= 1000
        if round(abs(value), 1) < 1000 or unit == _SI_UNITS[-1]:
            return f"{value:.1f} {unit}"
    raise AssertionError("unreachable")


def unique_resource_name(path: str | os.PathLike[str]) -> Path:
    """A path next to ``path`` that does not exist yet, numbered before the extensions."""
    path = Path(path)
    if not path.exists():
        return path
    name = path.name
    dot = name.find(".", 1)
    stem, suffix = (name, "") if dot == -1 else (name[:dot], name[dot:])
    counter = 1
    while True:
        candidate = path.with_name(f"{stem} ({counter}){suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def _sign(a: object, b: object) -> int:
    return (a > b) - (a < b)


def _compare_ci(a: str, b: str) -> int:
    return _sign(a.casefold(), b.casefold())


def _strip_the_prefix(text: str) -> str:
    return _THE_PREFIX.sub("", text, count=1).strip()


def _calculate_size(path: Path) -> tuple[str, int]:
    if path.is_dir():
        try:
            count = sum(1 for entry in os.listdir(path) if not entry.startswith("."))
        except OSError:
            count = 0
        return f"{count} {'item' if count == 1 else 'items'}", count
    try:
        size = path.stat().st_size
    except OSError:
        size = 0
    return human_readable_size(size), size


class Resource:
    """A file or folder resource, with its enabled state encoded in the file name."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.file_path: Path | None = None
        self.type = ResourceType.UNKNOWN
        self.internal_id = ""
        self.size_str = ""
        self.size_info = 0
        self.enabled = True
        self.date_time_changed: float | None = None
        self.metadata = None
        self._name = ""
        if path is not None:
            self.set_file(path)

    def set_file(self, path: str | os.PathLike[str]) -> None:
        self.file_path = Path(path)
        self._parse_file()

    def _parse_file(self) -> None:
        path = self.file_path
        file_name = path.name
        self.type = ResourceType.UNKNOWN
        self.internal_id = file_name
        self.size_str, self.size_info = _calculate_size(path)

        if path.is_dir():
            self.type = ResourceType.FOLDER
            self._name = file_name
        elif path.is_file():
            if file_name.endswith(_DISABLED_SUFFIX):
                file_name = file_name[: -len(_DISABLED_SUFFIX)]
                self.enabled = False
            if file_name.endswith((".zip", ".jar")):
                self.type = ResourceType.ZIPFILE
                file_name = file_name[:-4]
            elif file_name.endswith(".nilmod"):
                self.type = ResourceType.ZIPFILE
                file_name = file_name[:-7]
            elif file_name.endswith(".litemod"):
                self.type = ResourceType.LITEMOD
                file_name = file_name[:-8]
            else:
                self.type = ResourceType.SINGLEFILE
            self._name = file_name

        try:
            self.date_time_changed = path.stat().st_mtime
        except OSError:
            self.date_time_changed = None

    @property
    def name(self) -> str:
        if self.metadata is not None:
            return self.metadata.name
        return self._name

    @property
    def provider(self) -> str:
        if self.metadata is not None:
            return str(self.metadata.provider)
        return "Unknown"

    @property
    def is_symlink(self) -> bool:
        return self.file_path is not None and self.file_path.is_symlink()

    def compare(self, other: Resource, sort_type: SortType = SortType.ENABLED) -> int:
        """Return -1, 0 or 1 ordering this resource against ``other``."""
        if sort_type is SortType.NAME:
            return _compare_ci(_strip_the_prefix(self.name), _strip_the_prefix(other.name))
        if sort_type is SortType.DATE:
            return _sign(self.date_time_changed or 0.0, other.date_time_changed or 0.0)
        if sort_type is SortType.SIZE:
            if self.type != other.type:
                if self.type is ResourceType.FOLDER:
                    return -1
                if other.type is ResourceType.FOLDER:
                    return 1
            return _sign(self.size_info, other.size_info)
        if sort_type is SortType.PROVIDER:
            return _compare_ci(self.provider, other.provider)
        return _sign(self.enabled, other.enabled)

    def apply_filter(self, pattern: str | re.Pattern[str]) -> bool:
        return re.search(pattern, self.name) is not None

    def enable(self, action: EnableAction = EnableAction.TOGGLE) -> bool:
        """Rename the file to enable or disable it; return whether anything changed."""
        if self.type in (ResourceType.UNKNOWN, ResourceType.FOLDER):
            return False

        path = str(self.file_path.absolute())
        if action is EnableAction.ENABLE:
            target = True
        elif action is EnableAction.DISABLE:
            target = False
        else:
            target = not self.enabled

        if self.enabled == target:
            return False

        if target:
            if not path.endswith(_DISABLED_SUFFIX):
                return False
            new_path = path[: -len(_DISABLED_SUFFIX)]
        else:
            new_path = str(unique_resource_name(path + _DISABLED_SUFFIX))

        if os.path.exists(new_path):
            return False
        try:
            os.rename(path, new_path)
        except OSError:
            return False

        self.set_file(new_path)
        self.enabled = target
        return True

    def destroy(self) -> bool:
        """Delete the resource from disk."""
        self.type = ResourceType.UNKNOWN
        path = self.file_path
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError:
            return False
        return True

    def original_file_name(self) -> str:
        name = self.file_path.name
        if not self.enabled:
            name = name[: -len(_DISABLED_SUFFIX)]
        return name

    def is_symlink_under(self, inst_path: str | os.PathLike[str]) -> bool:
        if self.is_symlink:
            return True
        absolute = os.path.abspath(self.file_path)
        canonical = os.path.realpath(self.file_path)
        return os.path.relpath(absolute, inst_path) != os.path.relpath(canonical, inst_path)

    def is_more_than_one_hard_link(self) -> bool:
        try:
            return os.stat(self.file_path).st_nlink > 1
        except OSError:
            return False