"""Polling watcher over a directory tree that tracks matching files."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

Matcher = Callable[[str], bool]


def _entries(directory: Path, *, dirs: bool, hidden: bool) -> list[Path]:
    try:
        children = list(directory.iterdir())
    except OSError:
        return []
    selected = [
        child
        for child in children
        if child.is_dir() == dirs and (hidden or not child.name.startswith("."))
    ]
    return sorted(selected, key=lambda p: p.name.lower())


def _signature(path: Path, is_dir: bool) -> object:
    if is_dir:
        try:
            return frozenset(os.listdir(path))
        except OSError:
            return None
    try:
        st = path.stat()
    except OSError:
        return None
    return (st.st_mtime_ns, st.st_size)


class RecursiveFileWatcher:
    """Keeps the list of files under a root accepted by ``matcher`` up to date.

    Changes are detected by calling :meth:`poll`.
    """

    def __init__(
        self,
        matcher: Matcher | None = None,
        *,
        watch_files: bool = False,
        on_files_changed: Callable[[], None] | None = None,
        on_file_changed: Callable[[str], None] | None = None,
    ) -> None:
        self.matcher = matcher
        self.on_files_changed = on_files_changed
        self.on_file_changed = on_file_changed
        self._root: Path | None = None
        self._watch_files = watch_files
        self._enabled = False
        self._files: list[str] = []
        self._watched: dict[Path, tuple[bool, object]] = {}

    @property
    def root(self) -> Path | None:
        return self._root

    @property
    def files(self) -> list[str]:
        return list(self._files)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def watched_paths(self) -> list[str]:
        return [str(path) for path in self._watched]

    def set_root_dir(self, root: str | os.PathLike[str]) -> None:
        was_enabled = self._enabled
        self.disable()
        self._root = Path(root).absolute()
        self._set_files(self.scan())
        if was_enabled:
            self.enable()

    def set_watch_files(self, watch_files: bool) -> None:
        was_enabled = self._enabled
        self.disable()
        self._watch_files = watch_files
        if was_enabled:
            self.enable()

    def enable(self) -> None:
        if self._enabled:
            return
        if self._root is None or self._root == Path(self._root.anchor):
            raise ValueError("refusing to watch without a root or at the filesystem root")
        self._add_recursive(self._root)
        self._enabled = True

    def disable(self) -> None:
        if not self._enabled:
            return
        self._enabled = False
        self._watched.clear()

    def scan(self) -> list[str]:
        """Paths relative to the root, with '/' separators, that the matcher accepts."""
        if self.matcher is None or self._root is None:
            return []
        return self._scan(self._root)

    def poll(self) -> list[str]:
        """Check watched paths for changes, notify listeners and return the changed paths."""
        if not self._enabled:
            return []
        changed: list[str] = []
        directory_changed = False
        for path, (is_dir, old) in list(self._watched.items()):
            new = _signature(path, is_dir)
            if new == old:
                continue
            self._watched[path] = (is_dir, new)
            changed.append(str(path))
            if is_dir:
                directory_changed = True
            elif self.on_file_changed is not None:
                self.on_file_changed(str(path))
        if directory_changed:
            self._set_files(self.scan())
        return changed

    def _set_files(self, files: list[str]) -> None:
        if files != self._files:
            self._files = files
            if self.on_files_changed is not None:
                self.on_files_changed()

    def _add_recursive(self, directory: Path) -> None:
        self._watched[directory] = (True, _signature(directory, True))
        for sub in _entries(directory, dirs=True, hidden=False):
            self._add_recursive(sub)
        if self._watch_files:
            for file in _entries(directory, dirs=False, hidden=False):
                self._watched[file] = (False, _signature(file, False))

    def _scan(self, directory: Path) -> list[str]:
        result: list[str] = []
        for sub in _entries(directory, dirs=True, hidden=True):
            result.extend(self._scan(sub))
        for file in _entries(directory, dirs=False, hidden=True):
            rel = file.relative_to(self._root).as_posix()
            if self.matcher(rel):
                result.append(rel)
        return result