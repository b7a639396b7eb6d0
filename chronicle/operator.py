"""Stream operators: per-record transformations chained into a pipeline."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class StreamRecord:
    """A record flowing through a stream job."""

    key: bytes
    value: bytes
    timestamp_ms: int
    offset: int
    topic: str
    partition: int


class Operator(ABC):
    """One stage of a stream pipeline: turns a record into zero or more records."""

    @abstractmethod
    def process(self, record: StreamRecord) -> list[StreamRecord]:
        """Return the records produced from ``record``."""

    @abstractmethod
    def name(self) -> str:
        """Short name of the operator."""


class Filter(Operator):
    """Keeps records for which the predicate holds."""

    def __init__(self, predicate: Callable[[StreamRecord], bool]) -> None:
        self._predicate = predicate

    def process(self, record: StreamRecord) -> list[StreamRecord]:
        return [record] if self._predicate(record) else []

    def name(self) -> str:
        return "Filter"


class Map(Operator):
    """Replaces each record with the result of a transform."""

    def __init__(self, transform: Callable[[StreamRecord], StreamRecord]) -> None:
        self._transform = transform

    def process(self, record: StreamRecord) -> list[StreamRecord]:
        return [self._transform(record)]

    def name(self) -> str:
        return "Map"


class FlatMap(Operator):
    """Replaces each record with any number of records."""

    def __init__(
        self, transform: Callable[[StreamRecord], Iterable[StreamRecord]]
    ) -> None:
        self._transform = transform

    def process(self, record: StreamRecord) -> list[StreamRecord]:
        return list(self._transform(record))

    def name(self) -> str:
        return "FlatMap"


class RegexFilter(Operator):
    """Keeps records whose value, read as UTF-8, contains a match of the pattern.

    An invalid pattern raises ``re.error``.
    """

    def __init__(self, pattern: str) -> None:
        self._pattern = re.compile(pattern)

    def process(self, record: StreamRecord) -> list[StreamRecord]:
        text = bytes(record.value).decode("utf-8", errors="replace")
        return [record] if self._pattern.search(text) else []

    def name(self) -> str:
        return "RegexFilter"


class Passthrough(Operator):
    """Passes every record on unchanged."""

    def process(self, record: StreamRecord) -> list[StreamRecord]:
        return [record]

    def name(self) -> str:
        return "Passthrough"