"""A single log segment: a record file plus its offset and time indexes."""

from __future__ import annotations

import io
import logging
import os
import re
import time
from pathlib import Path
from typing import BinaryIO

from chronicle.errors import CorruptRecordError, OffsetOutOfRangeError, StorageError
from chronicle.index import Index
from chronicle.record import Record
from chronicle.time_index import TimeIndex

logger = logging.getLogger(__name__)

FILENAME_WIDTH = 20
_U32_MASK = 0xFFFFFFFF
_U64_LIMIT = 1 << 64
_DIGITS = re.compile(r"\+?[0-9]+", re.ASCII)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def segment_paths(
    directory: str | os.PathLike[str], base_offset: int
) -> tuple[Path, Path, Path]:
    """Return the log, index and time index paths for a segment."""
    directory = Path(directory)
    name = f"{base_offset:0{FILENAME_WIDTH}d}"
    return (
        directory / f"{name}.log",
        directory / f"{name}.index",
        directory / f"{name}.timeindex",
    )


def parse_base_offset(filename: str) -> int | None:
    """Parse the base offset from a name like ``00000000000000001024.log``."""
    if not filename.endswith(".log"):
        return None
    stem = filename[: -len(".log")]
    if not _DIGITS.fullmatch(stem):
        return None
    value = int(stem)
    return value if value < _U64_LIMIT else None


class Segment:
    """An append-only run of records starting at ``base_offset``."""

    def __init__(
        self,
        directory: Path,
        base_offset: int,
        index: Index,
        time_index: TimeIndex,
        size: int,
        next_offset: int,
    ) -> None:
        self._directory = directory
        self._base_offset = base_offset
        self._index = index
        self._time_index = time_index
        self._size = size
        self._next_offset = next_offset
        log_path = segment_paths(directory, base_offset)[0]
        self._writer: BinaryIO = open(log_path, "ab")
        self._reader: BinaryIO = open(log_path, "rb")

    @classmethod
    def create(cls, directory: str | os.PathLike[str], base_offset: int) -> Segment:
        """Create a new, empty segment, truncating any files already there."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        log_path, index_path, timeindex_path = segment_paths(directory, base_offset)
        log_path.write_bytes(b"")
        index = Index.create(index_path)
        time_index = TimeIndex.create(timeindex_path)
        return cls(directory, base_offset, index, time_index, 0, base_offset)

    @classmethod
    def open(cls, directory: str | os.PathLike[str], base_offset: int) -> Segment:
        """Open an existing segment, rebuilding missing index files."""
        directory = Path(directory)
        log_path, index_path, timeindex_path = segment_paths(directory, base_offset)
        size = log_path.stat().st_size

        if index_path.exists():
            index = Index.load(index_path)
        else:
            index = Index.rebuild(index_path, log_path, base_offset)

        if timeindex_path.exists():
            time_index = TimeIndex.load(timeindex_path)
        else:
            time_index = TimeIndex.rebuild(timeindex_path, log_path, base_offset)

        next_offset = base_offset + len(index)
        return cls(directory, base_offset, index, time_index, size, next_offset)

    @property
    def base_offset(self) -> int:
        return self._base_offset

    @property
    def next_offset(self) -> int:
        """One past the last offset written to this segment."""
        return self._next_offset

    @property
    def size(self) -> int:
        """Size of the record file in bytes."""
        return self._size

    def append(self, key: bytes, value: bytes) -> int:
        """Append a record at the next offset, stamped with the current time."""
        record = Record(self._next_offset, _now_ms(), bytes(key), bytes(value))
        return self._write_record(record)

    def append_at(self, offset: int, key: bytes, value: bytes) -> int:
        """Append a record, requiring that ``offset`` is the next offset."""
        if offset != self._next_offset:
            raise OffsetOutOfRangeError(offset, self._base_offset, self._next_offset)
        record = Record(offset, _now_ms(), bytes(key), bytes(value))
        return self._write_record(record)

    def append_record(self, record: Record) -> int:
        """Append a fully built record whose offset must be the next offset."""
        if record.offset != self._next_offset:
            raise OffsetOutOfRangeError(
                record.offset, self._base_offset, self._next_offset
            )
        return self._write_record(record)

    def _write_record(self, record: Record) -> int:
        position = self._size & _U32_MASK
        record.write_to(self._writer)
        self._writer.flush()

        relative_offset = (record.offset - self._base_offset) & _U32_MASK
        self._index.append(relative_offset, position)
        self._time_index.append(record.timestamp_ms, relative_offset)

        self._size += record.encoded_size()
        self._next_offset = record.offset + 1
        return record.offset

    def read_at(self, offset: int) -> Record:
        """Read the record stored at ``offset``."""
        out_of_range = OffsetOutOfRangeError(
            offset, self._base_offset, self._next_offset
        )
        if not self._base_offset <= offset < self._next_offset:
            raise out_of_range
        position = self._index.lookup((offset - self._base_offset) & _U32_MASK)
        if position is None:
            raise out_of_range
        self._reader.seek(position)
        record = Record.decode(self._reader)
        if record is None:
            raise CorruptRecordError(offset)
        return record

    def read_from(self, start_offset: int, max_records: int) -> list[Record]:
        """Read up to ``max_records`` consecutive records from ``start_offset``."""
        if start_offset >= self._next_offset:
            return []
        start = max(start_offset, self._base_offset)
        idx = self._index.find_index((start - self._base_offset) & _U32_MASK)
        if idx is None:
            return []
        self._reader.seek(self._index.position_at(idx))
        records: list[Record] = []
        for _ in range(max_records):
            record = Record.decode(self._reader)
            if record is None:
                break
            records.append(record)
        return records

    def recover(self) -> None:
        """Validate every record, cut off a corrupt tail and rebuild the indexes."""
        log_path, index_path, timeindex_path = segment_paths(
            self._directory, self._base_offset
        )
        stream = io.BytesIO(log_path.read_bytes())
        valid_size = 0
        count = 0
        while True:
            try:
                record = Record.decode(stream)
            except (StorageError, EOFError):
                logger.warning(
                    "truncating corrupt tail in segment base_offset=%d truncate_at=%d",
                    self._base_offset,
                    valid_size,
                )
                self._writer.flush()
                self._writer.truncate(valid_size)
                break
            if record is None:
                break
            valid_size += record.encoded_size()
            count += 1

        self._size = valid_size
        self._next_offset = self._base_offset + count
        self._index.close()
        self._index = Index.rebuild(index_path, log_path, self._base_offset)
        self._time_index.close()
        self._time_index = TimeIndex.rebuild(
            timeindex_path, log_path, self._base_offset
        )

    def flush(self) -> None:
        """Force the record file and both indexes to stable storage."""
        self._writer.flush()
        os.fsync(self._writer.fileno())
        self._index.flush()
        self._time_index.flush()

    def close(self) -> None:
        """Close every file held by the segment."""
        self._writer.close()
        self._reader.close()
        self._index.close()
        self._time_index.close()

    def __enter__(self) -> Segment:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def find_offset_by_timestamp(self, timestamp_ms: int) -> int | None:
        """Return the first offset whose timestamp is at or after ``timestamp_ms``."""
        relative = self._time_index.lookup(timestamp_ms)
        return None if relative is None else self._base_offset + relative

    def first_timestamp(self) -> int | None:
        """Return the timestamp of the first record in the segment, if any."""
        return self._time_index.first_timestamp()