"""Time index mapping record timestamps to relative offsets in a segment."""

from __future__ import annotations

import bisect
import os
import struct
from pathlib import Path
from typing import BinaryIO

from chronicle.record import Record

_ENTRY = struct.Struct(">QI")  # timestamp_ms, relative_offset


class TimeIndex:
    """Append-only index of (timestamp, relative offset) pairs."""

    def __init__(
        self, file: BinaryIO, timestamps: list[int], offsets: list[int]
    ) -> None:
        self._file = file
        self._timestamps = timestamps
        self._offsets = offsets

    @classmethod
    def create(cls, path: str | os.PathLike[str]) -> TimeIndex:
        """Create an empty time index file, truncating any existing one."""
        path = Path(path)
        path.write_bytes(b"")
        return cls(open(path, "ab"), [], [])

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> TimeIndex:
        """Load an existing time index; a partial trailing entry is ignored."""
        path = Path(path)
        data = path.read_bytes()
        usable = len(data) - len(data) % _ENTRY.size
        timestamps: list[int] = []
        offsets: list[int] = []
        for timestamp_ms, relative_offset in _ENTRY.iter_unpack(data[:usable]):
            timestamps.append(timestamp_ms)
            offsets.append(relative_offset)
        return cls(open(path, "ab"), timestamps, offsets)

    @classmethod
    def rebuild(
        cls,
        timeindex_path: str | os.PathLike[str],
        log_path: str | os.PathLike[str],
        base_offset: int,
    ) -> TimeIndex:
        """Rebuild the time index by scanning the log file from the beginning."""
        timeindex_path = Path(timeindex_path)
        timestamps: list[int] = []
        offsets: list[int] = []
        with open(log_path, "rb") as log_file:
            while (record := Record.decode(log_file)) is not None:
                timestamps.append(record.timestamp_ms)
                offsets.append((record.offset - base_offset) & 0xFFFFFFFF)
        with open(timeindex_path, "wb") as file:
            file.write(
                b"".join(_ENTRY.pack(t, o) for t, o in zip(timestamps, offsets))
            )
        return cls(open(timeindex_path, "ab"), timestamps, offsets)

    def append(self, timestamp_ms: int, relative_offset: int) -> None:
        """Add an entry and write it to the file."""
        self._file.write(_ENTRY.pack(timestamp_ms, relative_offset))
        self._file.flush()
        self._timestamps.append(timestamp_ms)
        self._offsets.append(relative_offset)

    def lookup(self, timestamp_ms: int) -> int | None:
        """Return the relative offset of the first entry at or after the timestamp."""
        idx = bisect.bisect_left(self._timestamps, timestamp_ms)
        if idx < len(self._offsets):
            return self._offsets[idx]
        return None

    def first_timestamp(self) -> int | None:
        """Return the timestamp of the first entry, if any."""
        return self._timestamps[0] if self._timestamps else None

    def flush(self) -> None:
        """Force the time index file to stable storage."""
        self._file.flush()
        os.fsync(self._file.fileno())

    def __len__(self) -> int:
        return len(self._timestamps)

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()

    def __enter__(self) -> TimeIndex:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()