# chronicle

An append-only, segmented commit log, with named topics split into
partitions, and a small operator pipeline for stream processing. Everything
runs in-process on local files; there are no dependencies beyond the
standard library.

## Storage

A log directory holds segment files named by their base offset, padded to
20 digits (`00000000000000000000.log`), each with an offset index
(`.index`) and a timestamp index (`.timeindex`). Each record carries a
CRC-32 checksum. When a log is opened, the last (active) segment is
scanned, any corrupt or truncated tail is cut off and its indexes are
rebuilt. Missing index files of other segments are rebuilt from the log.

```python
from chronicle.log import Log, StorageConfig

log = Log.open(StorageConfig(data_dir="./data", segment_max_bytes=10 * 1024 * 1024))
first = log.append(b"k0", b"v0")     # -> 0
second = log.append(b"k1", b"v1")    # -> 1

for record in log.read(0, 10):
    print(record.offset, record.key, record.value)

print(log.earliest_offset(), log.latest_offset())   # 0 2
log.close()
```

`StorageConfig()` defaults to `./data` and 10 MiB segments. `Log` is also a
context manager that closes its segments on exit.

- Once the active segment has reached `segment_max_bytes`, the next append
  rolls over to a new segment; `Log.segments` lists them, oldest first.
  Reads continue across segment boundaries.
- `Log.read(offset, max_records)` returns an empty list at or past the
  latest offset and raises `OffsetOutOfRangeError` before the earliest one.
- `Log.append_at(offset, key, value)` and `Log.append_record(record)`
  require the offset to be the next one, and raise `OffsetOutOfRangeError`
  otherwise. `append` and `append_at` stamp the record with the current
  time in milliseconds; `append_record` keeps the record's own timestamp.
- `Log.find_offset_by_timestamp(ts)` returns the first offset whose
  timestamp is at or after `ts`, or `None`.

The lower layers are usable on their own: `chronicle.segment.Segment`
(`create`, `open`, `append`, `read_at`, `read_from`, `recover`, `flush`),
`chronicle.index.Index` and `chronicle.time_index.TimeIndex`, plus
`segment_paths(directory, base_offset)` and `parse_base_offset(filename)`.

### Records

```python
import io
from chronicle.record import Record, RecordHeader

record = Record(offset=0, timestamp_ms=1_710_000_000_000, key=b"k", value=b"v",
                headers=[RecordHeader("trace-id", b"abc123")])
data = record.encode()
assert len(data) == record.encoded_size()
decoded = Record.decode(io.BytesIO(data))
```

A record also carries `producer_id`, `producer_epoch`, `sequence_number`,
`is_transactional` and `is_control`. `Record.decode` returns `None` at a
clean end of input, raises `CorruptRecordError` when the checksum does not
match and `EOFError` when the input ends inside a record.
`Record.write_to(writer)` writes the encoded form to a binary stream.

### Errors

All storage errors derive from `chronicle.errors.StorageError`:
`CorruptRecordError`, `OffsetOutOfRangeError`, `InvalidSegmentFileError`,
`UnknownTopicError`, `UnknownPartitionError` and `TopicAlreadyExistsError`.

## Topics

```python
from chronicle.log import StorageConfig
from chronicle.topic import PartitionAssignment, TopicStore

store = TopicStore.open(StorageConfig(data_dir="./data"))
store.create_topic("orders", 4, 1)
topic = store.topic("orders")
topic.partition(0).append(b"key", b"value")
print([meta.name for meta in store.list_topics()])
store.delete_topic("orders")
store.close()
```

Topics live under `<data_dir>/topics/<name>/`, with one `partition-<id>`
log directory per local partition, a `meta.bin` file (partition count and
replication factor) and, when assignments are given, an `assignments.bin`
file. Both persist across reopening.

`create_topic(name, partition_count, replication_factor, assignments,
local_partitions)` opens logs only for `local_partitions`; when that is
empty or omitted, every partition is held locally. `TopicState.partition(id)`
returns `None` for a partition not held here. Creating a topic that already
exists raises `TopicAlreadyExistsError`; deleting an unknown one raises
`UnknownTopicError`. The metadata helpers `write_meta`, `read_meta`,
`write_assignments` and `read_assignments` are public too.

## Stream processing

```python
import dataclasses

from chronicle.operator import Map, RegexFilter, StreamRecord
from chronicle.processor import StreamJob, StreamJobConfig

config = StreamJobConfig(
    job_name="uppercase",
    input_topic="orders",
    input_partition=0,
    output_topic="orders-upper",
    output_partition=0,
    server_addr="http://localhost:50051",
    poll_interval_ms=100,
)
job = (
    StreamJob.builder(config)
    .add_operator(RegexFilter(r"^\w+"))
    .add_operator(Map(lambda r: dataclasses.replace(r, value=r.value.upper())))
    .build()
)
outputs = job.process(StreamRecord(b"k", b"hello", 0, 0, "orders", 0))
# [StreamRecord(key=b'k', value=b'HELLO', ...)]
```

Available operators are `Filter`, `Map`, `FlatMap`, `RegexFilter` and
`Passthrough`; subclass `Operator` for your own. `StreamRecord` is a frozen
dataclass. `RegexFilter` searches the value decoded as UTF-8 and raises
`re.error` for an invalid pattern. `StreamJob.process_batch(records)` runs a
sequence of records through the pipeline, keeping input order. A job
configuration round-trips through `StreamJobConfig.to_json()` and
`StreamJobConfig.from_json()`, which raises `ValueError` for a missing or
ill-typed field.

## What this package does not do

There is no server, no network protocol and no command-line program. A
`StreamJob` only transforms records handed to it: it does not connect to
`server_addr`, fetch from the input topic, produce to the output topic or
poll on `poll_interval_ms`; those fields are carried in the configuration
for whatever drives the job. Topic stores and logs are not replicated;
partition assignments are only recorded.

## Running the tests

```
pip install -e .[test]
pytest
```