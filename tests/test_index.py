import pytest

from chronicle.errors import CorruptRecordError
from chronicle.index import Index
from chronicle.record import Record


def test_create_append_lookup(tmp_path):
    with Index.create(tmp_path / "test.index") as idx:
        idx.append(0, 0)
        idx.append(1, 100)
        idx.append(2, 250)

        assert idx.lookup(0) == 0
        assert idx.lookup(1) == 100
        assert idx.lookup(2) == 250
        assert idx.lookup(3) is None


def test_load_persisted(tmp_path):
    path = tmp_path / "test.index"
    with Index.create(path) as idx:
        idx.append(0, 0)
        idx.append(1, 64)
        idx.flush()

    with Index.load(path) as idx:
        assert len(idx) == 2
        assert idx.lookup(0) == 0
        assert idx.lookup(1) == 64


def test_on_disk_format_is_big_endian_pairs(tmp_path):
    path = tmp_path / "test.index"
    with Index.create(path) as idx:
        idx.append(1, 100)
    assert path.read_bytes() == b"\x00\x00\x00\x01\x00\x00\x00\x64"


def test_create_truncates_existing_file(tmp_path):
    path = tmp_path / "test.index"
    path.write_bytes(b"\x01" * 16)
    with Index.create(path) as idx:
        assert len(idx) == 0
    assert path.read_bytes() == b""


def test_load_ignores_partial_trailing_entry(tmp_path):
    path = tmp_path / "test.index"
    path.write_bytes(b"\x00\x00\x00\x00\x00\x00\x00\x05\x00\x00")
    with Index.load(path) as idx:
        assert len(idx) == 1
        assert idx.lookup(0) == 5


def test_find_index_and_position_at(tmp_path):
    with Index.create(tmp_path / "test.index") as idx:
        for rel in range(5):
            idx.append(rel, rel * 64)
        assert idx.find_index(3) == 3
        assert idx.find_index(9) is None
        assert idx.position_at(3) == 192
        assert idx.position_at(5) is None
        assert idx.position_at(-1) is None


def test_append_after_load_extends_file(tmp_path):
    path = tmp_path / "test.index"
    with Index.create(path) as idx:
        idx.append(0, 0)
    with Index.load(path) as idx:
        idx.append(1, 40)
    with Index.load(path) as idx:
        assert len(idx) == 2
        assert idx.lookup(1) == 40


def test_truncate_rewrites_file(tmp_path):
    path = tmp_path / "test.index"
    with Index.create(path) as idx:
        for rel in range(4):
            idx.append(rel, rel * 10)
        idx.truncate(2)
        assert len(idx) == 2
        assert idx.lookup(2) is None
        idx.append(2, 99)
    with Index.load(path) as idx:
        assert len(idx) == 3
        assert idx.lookup(1) == 10
        assert idx.lookup(2) == 99


def _write_log(path, records):
    with open(path, "wb") as log:
        for record in records:
            record.write_to(log)


def test_rebuild_from_log(tmp_path):
    log_path = tmp_path / "seg.log"
    index_path = tmp_path / "seg.index"
    records = [
        Record(offset=10, timestamp_ms=1000, key=b"a", value=b"1"),
        Record(offset=11, timestamp_ms=2000, key=b"bb", value=b"22"),
        Record(offset=12, timestamp_ms=3000, key=b"ccc", value=b"333"),
    ]
    _write_log(log_path, records)

    first = records[0].encoded_size()
    second = records[1].encoded_size()
    with Index.rebuild(index_path, log_path, 10) as idx:
        assert len(idx) == 3
        assert idx.lookup(0) == 0
        assert idx.lookup(1) == first
        assert idx.lookup(2) == first + second

    with Index.load(index_path) as idx:
        assert len(idx) == 3
        assert idx.lookup(2) == first + second


def test_rebuild_empty_log(tmp_path):
    log_path = tmp_path / "seg.log"
    log_path.write_bytes(b"")
    with Index.rebuild(tmp_path / "seg.index", log_path, 0) as idx:
        assert len(idx) == 0
        assert idx.lookup(0) is None


def test_rebuild_corrupt_log_raises(tmp_path):
    log_path = tmp_path / "seg.log"
    data = bytearray(Record(offset=0, timestamp_ms=0, value=b"data").encode())
    data[-1] ^= 0xFF
    log_path.write_bytes(bytes(data))
    with pytest.raises(CorruptRecordError):
        Index.rebuild(tmp_path / "seg.index", log_path, 0)