"""Persistent list of private modpack codes."""

from __future__ import annotations

import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_FILENAME = "private_packs.txt"


class PrivatePackManager:
    """Keeps a set of pack codes in a newline separated text file."""

    def __init__(self, filename: str | os.PathLike[str] = DEFAULT_FILENAME) -> None:
        self.filename = Path(filename)
        self._packs: set[str] = set()
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def load(self) -> None:
        """Read the pack codes from disk; on failure the set is left empty."""
        try:
            text = self.filename.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            self._packs = set()
            log.warning("Failed to read third party FTB pack codes from %s", self.filename)
            return
        self._packs = {line for line in text.split("\n") if line}
        self._dirty = False

    def save(self) -> None:
        """Write the pack codes to disk if they changed since the last load or save."""
        if not self._dirty:
            return
        try:
            self.filename.parent.mkdir(parents=True, exist_ok=True)
            self.filename.write_bytes("\n".join(sorted(self._packs)).encode("utf-8"))
        except OSError:
            log.warning("Failed to write third party FTB pack codes to %s", self.filename)
            return
        self._dirty = False

    def add(self, code: str) -> None:
        self._packs.add(code)
        self._dirty = True

    def remove(self, code: str) -> None:
        self._packs.discard(code)
        self._dirty = True

    def current_pack_codes(self) -> frozenset[str]:
        return frozenset(self._packs)

    def __enter__(self) -> PrivatePackManager:
        self.load()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.save()