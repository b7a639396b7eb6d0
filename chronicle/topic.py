"""Topics: named groups of partition logs with their metadata on disk."""

from __future__ import annotations

import os
import re
import shutil
import struct
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path

from chronicle.errors import StorageError, TopicAlreadyExistsError, UnknownTopicError
from chronicle.log import Log, StorageConfig

_META = struct.Struct("<II")  # partition_count, replication_factor
_U32 = struct.Struct("<I")
_U32_LIMIT = 1 << 32
_PARTITION_DIR = re.compile(r"partition-(\+?[0-9]+)", re.ASCII)

META_FILE = "meta.bin"
ASSIGNMENTS_FILE = "assignments.bin"


@dataclass
class PartitionAssignment:
    """The brokers holding replicas of one partition."""

    partition_id: int
    replicas: list[int] = field(default_factory=list)


@dataclass
class TopicMeta:
    """Persistent description of a topic."""

    name: str
    partition_count: int
    replication_factor: int


@dataclass
class TopicState:
    """A loaded topic: its metadata, the partitions held locally and assignments."""

    meta: TopicMeta
    partitions: dict[int, Log] = field(default_factory=dict)
    assignments: list[PartitionAssignment] = field(default_factory=list)

    def partition(self, partition_id: int) -> Log | None:
        """Return the local log for a partition, or None if it is not held here."""
        return self.partitions.get(partition_id)

    def partition_count(self) -> int:
        """Number of partitions the topic has across the cluster."""
        return self.meta.partition_count

    def local_partition_ids(self) -> list[int]:
        """Ids of the partitions stored on this node."""
        return list(self.partitions)

    def _close(self) -> None:
        for log in self.partitions.values():
            log.close()


class TopicStore:
    """All topics under ``<data_dir>/topics``."""

    def __init__(
        self,
        data_dir: Path,
        segment_max_bytes: int,
        topics: dict[str, TopicState],
    ) -> None:
        self._data_dir = data_dir
        self._segment_max_bytes = segment_max_bytes
        self._topics = topics
        self._lock = threading.RLock()

    @property
    def _topics_dir(self) -> Path:
        return self._data_dir / "topics"

    @classmethod
    def open(cls, config: StorageConfig) -> TopicStore:
        """Open the store, loading every topic found on disk."""
        data_dir = Path(config.data_dir)
        topics_dir = data_dir / "topics"
        topics_dir.mkdir(parents=True, exist_ok=True)

        topics: dict[str, TopicState] = {}
        for entry in os.scandir(topics_dir):
            if not entry.is_dir():
                continue
            topic_dir = Path(entry.path)
            meta = read_meta(topic_dir / META_FILE, entry.name)
            assignments = read_assignments(topic_dir / ASSIGNMENTS_FILE) or []
            partitions = _open_partitions(topic_dir, config.segment_max_bytes)
            topics[entry.name] = TopicState(meta, partitions, assignments)

        return cls(data_dir, config.segment_max_bytes, topics)

    def create_topic(
        self,
        name: str,
        partition_count: int,
        replication_factor: int,
        assignments: list[PartitionAssignment] | None = None,
        local_partitions: list[int] | None = None,
    ) -> None:
        """Create a topic and open logs for its local partitions.

        With no local partitions given, every partition is held locally.
        """
        assignments = list(assignments or [])
        with self._lock:
            if name in self._topics:
                raise TopicAlreadyExistsError(name)

            topic_dir = self._topics_dir / name
            topic_dir.mkdir(parents=True, exist_ok=True)

            meta = TopicMeta(name, partition_count, replication_factor)
            write_meta(topic_dir / META_FILE, meta)
            if assignments:
                write_assignments(topic_dir / ASSIGNMENTS_FILE, assignments)

            partition_ids = (
                list(local_partitions) if local_partitions else range(partition_count)
            )
            partitions = {
                pid: Log.open(
                    StorageConfig(
                        data_dir=topic_dir / f"partition-{pid}",
                        segment_max_bytes=self._segment_max_bytes,
                    )
                )
                for pid in partition_ids
            }
            self._topics[name] = TopicState(
                meta, partitions, [replace(a, replicas=list(a.replicas)) for a in assignments]
            )

    def delete_topic(self, name: str) -> None:
        """Remove a topic and all of its files."""
        with self._lock:
            state = self._topics.pop(name, None)
            if state is None:
                raise UnknownTopicError(name)
            state._close()
            shutil.rmtree(self._topics_dir / name)

    def list_topics(self) -> list[TopicMeta]:
        """Metadata of every topic, as copies."""
        with self._lock:
            return [replace(state.meta) for state in self._topics.values()]

    def topic(self, name: str) -> TopicState | None:
        """Return the named topic, or None."""
        with self._lock:
            return self._topics.get(name)

    def close(self) -> None:
        """Close every partition log of every topic."""
        with self._lock:
            for state in self._topics.values():
                state._close()

    def __enter__(self) -> TopicStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _open_partitions(topic_dir: Path, segment_max_bytes: int) -> dict[int, Log]:
    partitions: dict[int, Log] = {}
    for entry in os.scandir(topic_dir):
        if not entry.is_dir():
            continue
        match = _PARTITION_DIR.fullmatch(entry.name)
        if match is None:
            continue
        pid = int(match.group(1))
        if pid >= _U32_LIMIT:
            continue
        partitions[pid] = Log.open(
            StorageConfig(data_dir=Path(entry.path), segment_max_bytes=segment_max_bytes)
        )
    return partitions


def write_meta(path: str | os.PathLike[str], meta: TopicMeta) -> None:
    """Write a topic's partition count and replication factor."""
    Path(path).write_bytes(_META.pack(meta.partition_count, meta.replication_factor))


def read_meta(path: str | os.PathLike[str], name: str) -> TopicMeta:
    """Read a topic's metadata file; the name comes from the directory."""
    data = Path(path).read_bytes()
    if len(data) < _META.size:
        raise StorageError(f"meta.bin too short: {len(data)} bytes")
    partition_count, replication_factor = _META.unpack_from(data, 0)
    return TopicMeta(name, partition_count, replication_factor)


def write_assignments(
    path: str | os.PathLike[str], assignments: list[PartitionAssignment]
) -> None:
    """Write the replica assignments of a topic's partitions."""
    parts = [_U32.pack(len(assignments))]
    for assignment in assignments:
        parts.append(_U32.pack(assignment.partition_id))
        parts.append(_U32.pack(len(assignment.replicas)))
        parts.extend(_U32.pack(replica) for replica in assignment.replicas)
    Path(path).write_bytes(b"".join(parts))


def read_assignments(path: str | os.PathLike[str]) -> list[PartitionAssignment] | None:
    """Read replica assignments; None if the file is missing or too short."""
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        return None
    if len(data) < _U32.size:
        return None

    pos = 0

    def take_u32() -> int:
        nonlocal pos
        try:
            (value,) = _U32.unpack_from(data, pos)
        except struct.error as exc:
            raise StorageError(f"assignments.bin truncated at byte {pos}") from exc
        pos += _U32.size
        return value

    assignments = []
    for _ in range(take_u32()):
        partition_id = take_u32()
        replica_count = take_u32()
        replicas = [take_u32() for _ in range(replica_count)]
        assignments.append(PartitionAssignment(partition_id, replicas))
    return assignments