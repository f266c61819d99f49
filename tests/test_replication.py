import pytest

from shardring.hash_ring import ConsistentHashRing

TEST_KEYS = ["user1", "user2", "user3", "data1", "session123"]


@pytest.fixture
def ring():
    return ConsistentHashRing(["node1", "node2", "node3"], replicas=10)


def test_preference_list_starts_with_owner(ring):
    for key in TEST_KEYS:
        nodes = ring.get_nodes(key, 2)
        assert nodes[0] == ring.get_node(key)


@pytest.mark.parametrize("count", [1, 2, 3])
def test_preference_list_is_distinct(ring, count):
    for key in TEST_KEYS:
        nodes = ring.get_nodes(key, count)
        assert len(nodes) == count
        assert len(set(nodes)) == count


def test_preference_list_capped_at_cluster_size(ring):
    assert sorted(ring.get_nodes("user1", 10)) == ["node1", "node2", "node3"]


def test_preference_list_grows_with_cluster(ring):
    ring.add_node("node4")
    ring.add_node("node5")

    for key in TEST_KEYS:
        assert len(ring.get_nodes(key, 4)) == 4


def test_preference_list_rejects_bad_count(ring):
    with pytest.raises(ValueError):
        ring.get_nodes("user1", 0)
