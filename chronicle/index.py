"""Offset index mapping relative offsets to byte positions in a segment log."""

from __future__ import annotations

import bisect
import os
import struct
from pathlib import Path
from typing import BinaryIO

from chronicle.record import Record

_ENTRY = struct.Struct(">II")  # relative_offset, position


class Index:
    """Sorted, append-only index of (relative offset, file position) pairs."""

    def __init__(
        self,
        path: Path,
        file: BinaryIO,
        offsets: list[int],
        positions: list[int],
    ) -> None:
        self._path = path
        self._file = file
        self._offsets = offsets
        self._positions = positions

    @classmethod
    def create(cls, path: str | os.PathLike[str]) -> Index:
        """Create an empty index file, truncating any existing one."""
        path = Path(path)
        path.write_bytes(b"")
        return cls(path, open(path, "ab"), [], [])

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> Index:
        """Load an existing index file; a partial trailing entry is ignored."""
        path = Path(path)
        data = path.read_bytes()
        usable = len(data) - len(data) % _ENTRY.size
        offsets: list[int] = []
        positions: list[int] = []
        for relative_offset, position in _ENTRY.iter_unpack(data[:usable]):
            offsets.append(relative_offset)
            positions.append(position)
        return cls(path, open(path, "ab"), offsets, positions)

    @classmethod
    def rebuild(
        cls,
        index_path: str | os.PathLike[str],
        log_path: str | os.PathLike[str],
        base_offset: int,
    ) -> Index:
        """Rebuild the index by scanning the log file from the beginning."""
        index_path = Path(index_path)
        offsets: list[int] = []
        positions: list[int] = []
        file_pos = 0
        with open(log_path, "rb") as log_file:
            while (record := Record.decode(log_file)) is not None:
                offsets.append((record.offset - base_offset) & 0xFFFFFFFF)
                positions.append(file_pos & 0xFFFFFFFF)
                file_pos += record.encoded_size()
        _write_entries(index_path, offsets, positions)
        return cls(index_path, open(index_path, "ab"), offsets, positions)

    def append(self, relative_offset: int, position: int) -> None:
        """Add an entry and write it to the file."""
        self._file.write(_ENTRY.pack(relative_offset, position))
        self._file.flush()
        self._offsets.append(relative_offset)
        self._positions.append(position)

    def lookup(self, relative_offset: int) -> int | None:
        """Return the byte position for a relative offset, or None."""
        idx = self.find_index(relative_offset)
        return None if idx is None else self._positions[idx]

    def find_index(self, relative_offset: int) -> int | None:
        """Return the entry number holding the relative offset, or None."""
        idx = bisect.bisect_left(self._offsets, relative_offset)
        if idx < len(self._offsets) and self._offsets[idx] == relative_offset:
            return idx
        return None

    def __len__(self) -> int:
        return len(self._offsets)

    def position_at(self, idx: int) -> int | None:
        """Return the byte position stored in entry number ``idx``, or None."""
        if 0 <= idx < len(self._positions):
            return self._positions[idx]
        return None

    def flush(self) -> None:
        """Force the index file to stable storage."""
        self._file.flush()
        os.fsync(self._file.fileno())

    def truncate(self, count: int) -> None:
        """Keep only the first ``count`` entries, rewriting the file."""
        del self._offsets[count:]
        del self._positions[count:]
        self._file.close()
        _write_entries(self._path, self._offsets, self._positions)
        self._file = open(self._path, "ab")

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()

    def __enter__(self) -> Index:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _write_entries(path: Path, offsets: list[int], positions: list[int]) -> None:
    with open(path, "wb") as file:
        file.write(b"".join(_ENTRY.pack(o, p) for o, p in zip(offsets, positions)))