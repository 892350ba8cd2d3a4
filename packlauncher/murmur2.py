"""Incremental MurmurHash2 (seed 1) over a byte stream, with byte filtering."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterator
from typing import BinaryIO

_M = 0x5BD1E995
_R = 24
_MASK = 0xFFFFFFFF

ByteFilter = Callable[[int], bool]


def _chunks(stream: BinaryIO, buffer_size: int) -> Iterator[bytes]:
    yield from iter(lambda: stream.read(buffer_size), b"")


def _removed_bytes(filter_out: ByteFilter | None) -> bytes:
    if filter_out is None:
        return b""
    return bytes(value for value in range(256) if filter_out(value))


def _mix_block(h: int, block: bytes) -> int:
    k = int.from_bytes(block, "little")
    k = (k * _M) & _MASK
    k ^= k >> _R
    k = (k * _M) & _MASK
    h = (h * _M) & _MASK
    return h ^ k


def _final_mix(h: int, tail: bytes) -> int:
    length = len(tail)
    if length >= 3:
        h ^= tail[2] << 16
    if length >= 2:
        h ^= tail[1] << 8
    if length >= 1:
        h ^= tail[0]
        h = (h * _M) & _MASK
    h ^= h >> 13
    h = (h * _M) & _MASK
    h ^= h >> 15
    return h


def murmur2_hash(
    stream: BinaryIO,
    buffer_size: int = 4096,
    filter_out: ByteFilter | None = None,
) -> int:
    """Hash a seekable binary stream, skipping every byte for which ``filter_out`` is true.

    The stream is read twice: once to count the kept bytes, then again after
    seeking back to its start to compute the hash.
    """
    if buffer_size <= 0:
        raise ValueError("buffer_size must be positive")
    removed = _removed_bytes(filter_out)

    size = sum(len(chunk.translate(None, removed)) for chunk in _chunks(stream, buffer_size))
    stream.seek(0)

    h = (1 ^ size) & _MASK
    pending = bytearray()
    for chunk in _chunks(stream, buffer_size):
        pending += chunk.translate(None, removed)
        full = len(pending) - len(pending) % 4
        for start in range(0, full, 4):
            h = _mix_block(h, bytes(pending[start : start + 4]))
        del pending[:full]

    return _final_mix(h, bytes(pending))


def hash_bytes(data: bytes, filter_out: ByteFilter | None = None) -> int:
    """Hash an in-memory byte string the same way as :func:`murmur2_hash`."""
    return murmur2_hash(io.BytesIO(bytes(data)), filter_out=filter_out)