"""A partition log made of a sequence of segments."""

from __future__ import annotations

import bisect
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from chronicle.errors import OffsetOutOfRangeError
from chronicle.record import Record
from chronicle.segment import Segment, parse_base_offset

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """Where a log lives and how large its segments may grow."""

    data_dir: Path = field(default_factory=lambda: Path("./data"))
    segment_max_bytes: int = 10 * 1024 * 1024

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)


class Log:
    """An append-only log rolled over into segments of bounded size."""

    def __init__(
        self, directory: Path, segments: list[Segment], config: StorageConfig
    ) -> None:
        self._dir = directory
        self._segments = segments
        self._config = config

    @classmethod
    def open(cls, config: StorageConfig) -> Log:
        """Open a log directory, creating it if needed.

        The last (active) segment is checked and any corrupt tail removed.
        """
        directory = Path(config.data_dir)
        directory.mkdir(parents=True, exist_ok=True)

        base_offsets = sorted(
            {
                offset
                for entry in os.scandir(directory)
                if (offset := parse_base_offset(entry.name)) is not None
            }
        )

        segments = [Segment.open(directory, base) for base in base_offsets]
        if segments:
            segments[-1].recover()
        else:
            segments.append(Segment.create(directory, 0))
        return cls(directory, segments, config)

    @property
    def segments(self) -> tuple[Segment, ...]:
        """The segments of the log, oldest first."""
        return tuple(self._segments)

    def _active_segment(self) -> Segment:
        active = self._segments[-1]
        if active.size >= self._config.segment_max_bytes:
            new_base = active.next_offset
            active = Segment.create(self._dir, new_base)
            self._segments.append(active)
            logger.info("rolled to new segment new_base_offset=%d", new_base)
        return active

    def append(self, key: bytes, value: bytes) -> int:
        """Append a record at the next offset and return that offset."""
        return self._active_segment().append(key, value)

    def append_record(self, record: Record) -> int:
        """Append a fully built record to the active segment."""
        return self._active_segment().append_record(record)

    def append_at(self, offset: int, key: bytes, value: bytes) -> int:
        """Append a record, requiring that ``offset`` is the next offset."""
        return self._active_segment().append_at(offset, key, value)

    def read(self, offset: int, max_records: int) -> list[Record]:
        """Read up to ``max_records`` from ``offset``, across segment boundaries."""
        earliest = self.earliest_offset()
        latest = self.latest_offset()
        if offset >= latest:
            return []
        if offset < earliest:
            raise OffsetOutOfRangeError(offset, earliest, latest)

        records: list[Record] = []
        remaining = max_records
        for segment in self._segments[self._find_segment(offset) :]:
            if remaining <= 0:
                break
            batch = segment.read_from(offset + len(records), remaining)
            remaining -= len(batch)
            records.extend(batch)
        return records

    def earliest_offset(self) -> int:
        """The first offset still held by the log."""
        return self._segments[0].base_offset if self._segments else 0

    def latest_offset(self) -> int:
        """One past the last written offset."""
        return self._segments[-1].next_offset if self._segments else 0

    def find_offset_by_timestamp(self, timestamp_ms: int) -> int | None:
        """Return the first offset whose timestamp is at or after ``timestamp_ms``."""
        if not self._segments:
            return None
        start = 0
        for i, segment in enumerate(self._segments):
            first = segment.first_timestamp()
            if first is None:
                continue
            if first > timestamp_ms:
                break
            start = i
        for segment in self._segments[start:]:
            offset = segment.find_offset_by_timestamp(timestamp_ms)
            if offset is not None:
                return offset
        return None

    def _find_segment(self, offset: int) -> int:
        bases = [segment.base_offset for segment in self._segments]
        return max(bisect.bisect_right(bases, offset) - 1, 0)

    def close(self) -> None:
        """Close every segment."""
        for segment in self._segments:
            segment.close()

    def __enter__(self) -> Log:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()