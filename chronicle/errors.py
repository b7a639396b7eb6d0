"""Exceptions raised by the storage layer."""

from __future__ import annotations

import os
from pathlib import Path


class StorageError(Exception):
    """Base class for every storage failure."""


class CorruptRecordError(StorageError):
    """A record failed its checksum or could not be decoded."""

    def __init__(self, offset: int) -> None:
        self.offset = offset
        super().__init__(f"corrupt record at offset {offset}")


class OffsetOutOfRangeError(StorageError):
    """A requested offset lies outside the half-open range [earliest, latest)."""

    def __init__(self, requested: int, earliest: int, latest: int) -> None:
        self.requested = requested
        self.earliest = earliest
        self.latest = latest
        super().__init__(
            f"offset {requested} out of range [{earliest}, {latest})"
        )


class InvalidSegmentFileError(StorageError):
    """A file in a log directory does not have a valid segment name."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        super().__init__(f"invalid segment filename: {self.path}")


class UnknownTopicError(StorageError):
    """The named topic does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown topic: {name}")


class UnknownPartitionError(StorageError):
    """The topic has no partition with the given id."""

    def __init__(self, topic: str, partition: int, count: int) -> None:
        self.topic = topic
        self.partition = partition
        self.count = count
        super().__init__(
            f"unknown partition {partition} for topic {topic} (count: {count})"
        )


class TopicAlreadyExistsError(StorageError):
    """A topic with this name has already been created."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"topic already exists: {name}")