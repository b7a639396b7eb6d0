"""Stream job definitions: configuration and an ordered operator pipeline."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import asdict, dataclass, fields

from chronicle.operator import Operator, StreamRecord

_U32_LIMIT = 1 << 32
_U64_LIMIT = 1 << 64


@dataclass
class StreamJobConfig:
    """Where a stream job reads from, writes to and how often it polls."""

    job_name: str
    input_topic: str
    input_partition: int
    output_topic: str
    output_partition: int
    server_addr: str
    poll_interval_ms: int

    def to_json(self) -> str:
        """Serialise the configuration as a JSON object."""
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, text: str | bytes) -> StreamJobConfig:
        """Parse a configuration from JSON; unknown keys are ignored.

        Raises ValueError when a field is missing or has the wrong type.
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("stream job config must be a JSON object")
        limits = {
            "input_partition": _U32_LIMIT,
            "output_partition": _U32_LIMIT,
            "poll_interval_ms": _U64_LIMIT,
        }
        values = {}
        for f in fields(cls):
            if f.name not in data:
                raise ValueError(f"missing field `{f.name}`")
            value = data[f.name]
            if f.name in limits:
                if (
                    not isinstance(value, int)
                    or isinstance(value, bool)
                    or not 0 <= value < limits[f.name]
                ):
                    raise ValueError(f"invalid value for `{f.name}`: {value!r}")
            elif not isinstance(value, str):
                raise ValueError(f"invalid value for `{f.name}`: {value!r}")
            values[f.name] = value
        return cls(**values)


class StreamJob:
    """A configured pipeline of operators applied in order."""

    def __init__(self, config: StreamJobConfig, operators: Iterable[Operator]) -> None:
        self.config = config
        self._operators = tuple(operators)

    @property
    def operators(self) -> tuple[Operator, ...]:
        return self._operators

    @classmethod
    def builder(cls, config: StreamJobConfig) -> StreamJobBuilder:
        """Start building a job with the given configuration."""
        return StreamJobBuilder(config)

    def process(self, record: StreamRecord) -> list[StreamRecord]:
        """Run one input record through every operator in turn."""
        current = [record]
        for op in self._operators:
            current = [out for rec in current for out in op.process(rec)]
        return current

    def process_batch(self, records: Iterable[StreamRecord]) -> list[StreamRecord]:
        """Run each record through the pipeline, keeping input order."""
        return [out for record in records for out in self.process(record)]


class StreamJobBuilder:
    """Collects operators for a StreamJob."""

    def __init__(self, config: StreamJobConfig) -> None:
        self._config = config
        self._operators: list[Operator] = []

    def add_operator(self, op: Operator) -> StreamJobBuilder:
        """Append an operator to the pipeline and return the builder."""
        self._operators.append(op)
        return self

    def build(self) -> StreamJob:
        """Create the job."""
        return StreamJob(self._config, self._operators)