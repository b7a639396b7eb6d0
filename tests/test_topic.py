import pytest

from chronicle.errors import StorageError, TopicAlreadyExistsError, UnknownTopicError
from chronicle.log import StorageConfig
from chronicle.topic import (
    PartitionAssignment,
    TopicMeta,
    TopicStore,
    read_assignments,
    read_meta,
    write_assignments,
    write_meta,
)


def _config(path):
    return StorageConfig(data_dir=path, segment_max_bytes=10 * 1024 * 1024)


def _assignments():
    return [
        PartitionAssignment(partition_id=0, replicas=[1, 2]),
        PartitionAssignment(partition_id=1, replicas=[2, 1]),
    ]


@pytest.fixture
def store(tmp_path):
    with TopicStore.open(_config(tmp_path)) as s:
        yield s


def test_open_empty_dir(store):
    assert store.list_topics() == []


def test_create_and_get_topic(store):
    store.create_topic("orders", 4, 1, [], [])
    topic = store.topic("orders")
    assert topic.partition_count() == 4
    assert topic.meta.replication_factor == 1
    assert sorted(topic.local_partition_ids()) == [0, 1, 2, 3]


def test_create_duplicate_topic(store):
    store.create_topic("orders", 4, 1, [], [])
    with pytest.raises(TopicAlreadyExistsError):
        store.create_topic("orders", 2, 1, [], [])


def test_delete_topic(tmp_path, store):
    store.create_topic("orders", 2, 1, [], [])
    store.delete_topic("orders")
    assert store.topic("orders") is None
    assert store.list_topics() == []
    assert not (tmp_path / "topics" / "orders").exists()


def test_delete_unknown_topic(store):
    with pytest.raises(UnknownTopicError):
        store.delete_topic("nope")


def test_list_topics(store):
    store.create_topic("a", 1, 1, [], [])
    store.create_topic("b", 3, 1, [], [])
    assert sorted(m.name for m in store.list_topics()) == ["a", "b"]


def test_partition_write_and_read(store):
    store.create_topic("t", 2, 1, [], [])
    topic = store.topic("t")
    topic.partition(0).append(b"k0", b"v0")
    topic.partition(1).append(b"k1", b"v1")

    recs = topic.partition(0).read(0, 10)
    assert len(recs) == 1
    assert recs[0].key == b"k0"

    recs = topic.partition(1).read(0, 10)
    assert len(recs) == 1
    assert recs[0].key == b"k1"


def test_partition_out_of_range(store):
    store.create_topic("t", 2, 1, [], [])
    assert store.topic("t").partition(2) is None


def test_reopen_persists_topics_and_data(tmp_path):
    with TopicStore.open(_config(tmp_path)) as first:
        first.create_topic("orders", 2, 3, [], [])
        first.topic("orders").partition(0).append(b"k", b"v")

    with TopicStore.open(_config(tmp_path)) as second:
        topics = second.list_topics()
        assert len(topics) == 1
        assert topics[0] == TopicMeta("orders", 2, 3)
        recs = second.topic("orders").partition(0).read(0, 10)
        assert len(recs) == 1
        assert recs[0].value == b"v"


def test_create_topic_with_local_partitions(store):
    store.create_topic("t", 2, 2, _assignments(), [0])
    topic = store.topic("t")
    assert topic.partition(0) is not None
    assert topic.partition(1) is None
    assert len(topic.assignments) == 2
    assert topic.local_partition_ids() == [0]


def test_reopen_with_assignments(tmp_path):
    with TopicStore.open(_config(tmp_path)) as first:
        first.create_topic("t", 2, 2, _assignments(), [0])

    with TopicStore.open(_config(tmp_path)) as second:
        topic = second.topic("t")
        assert topic.partition(0) is not None
        assert topic.partition(1) is None
        assert len(topic.assignments) == 2
        assert topic.assignments[0].replicas == [1, 2]


def test_list_topics_returns_copies(store):
    store.create_topic("t", 2, 1, [], [])
    store.list_topics()[0].partition_count = 99
    assert store.topic("t").partition_count() == 2


def test_meta_bin_roundtrip(tmp_path):
    path = tmp_path / "meta.bin"
    write_meta(path, TopicMeta("test", 8, 3))
    loaded = read_meta(path, "test")
    assert loaded.partition_count == 8
    assert loaded.replication_factor == 3
    assert loaded.name == "test"


def test_meta_bin_is_little_endian(tmp_path):
    path = tmp_path / "meta.bin"
    write_meta(path, TopicMeta("test", 1, 2))
    assert path.read_bytes() == b"\x01\x00\x00\x00\x02\x00\x00\x00"


def test_meta_bin_too_short(tmp_path):
    path = tmp_path / "meta.bin"
    path.write_bytes(b"\x01\x00")
    with pytest.raises(StorageError, match="too short"):
        read_meta(path, "test")


def test_assignments_bin_roundtrip(tmp_path):
    path = tmp_path / "assignments.bin"
    write_assignments(
        path,
        [
            PartitionAssignment(partition_id=0, replicas=[1, 2, 3]),
            PartitionAssignment(partition_id=1, replicas=[2, 3, 1]),
        ],
    )
    loaded = read_assignments(path)
    assert len(loaded) == 2
    assert loaded[0].partition_id == 0
    assert loaded[0].replicas == [1, 2, 3]
    assert loaded[1].partition_id == 1
    assert loaded[1].replicas == [2, 3, 1]


def test_assignments_bin_missing_returns_none(tmp_path):
    assert read_assignments(tmp_path / "assignments.bin") is None


def test_assignments_bin_too_short_returns_none(tmp_path):
    path = tmp_path / "assignments.bin"
    path.write_bytes(b"\x01")
    assert read_assignments(path) is None


def test_assignments_bin_truncated_raises(tmp_path):
    path = tmp_path / "assignments.bin"
    path.write_bytes(b"\x02\x00\x00\x00\x00\x00\x00\x00")
    with pytest.raises(StorageError):
        read_assignments(path)