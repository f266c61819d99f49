import pytest

from shardring.hash_ring import (
    DEFAULT_REPLICAS,
    ConsistentHashRing,
    EmptyRingError,
    md5_position,
)

SAMPLE_KEYS = [f"user:{i}" for i in range(10000)]


def fixed_hash(table):
    """Hash function that reads positions from a table."""
    def _hash(key):
        if isinstance(key, bytes):
            key = key.decode()
        return table[key]
    return _hash


def assignments(ring, keys=SAMPLE_KEYS):
    return {key: ring.get_node(key) for key in keys}


def test_empty_ring_lookup_raises():
    ring = ConsistentHashRing()

    with pytest.raises(EmptyRingError):
        ring.get_node("user:1")
    with pytest.raises(LookupError):
        ring.get_nodes("user:1", 2)


def test_replicas_must_be_positive():
    with pytest.raises(ValueError):
        ConsistentHashRing(replicas=0)

    ring = ConsistentHashRing()
    with pytest.raises(ValueError):
        ring.add_node("a", replicas=-1)
    assert "a" not in ring


def test_add_node_places_replicas():
    ring = ConsistentHashRing(replicas=5)
    ring.add_node("shard1")
    ring.add_node("shard2", replicas=2)

    assert ring.replicas_of("shard1") == 5
    assert ring.replicas_of("shard2") == 2
    assert len(ring.positions()) == 7
    assert ring.positions("shard1") == sorted(
        md5_position(f"shard1:{i}") for i in range(5)
    )
    assert ring.positions() == sorted(ring.positions())


def test_default_replica_count():
    ring = ConsistentHashRing(["a"])
    assert ring.replicas_of("a") == DEFAULT_REPLICAS


def test_duplicate_add_replaces_replicas():
    ring = ConsistentHashRing(["a", "b"], replicas=4)
    ring.add_node("a")
    assert len(ring.positions()) == 8

    ring.add_node("a", replicas=10)
    assert ring.replicas_of("a") == 10
    assert len(ring.positions("a")) == 10
    assert len(ring.positions()) == 14
    assert len(ring) == 2


def test_remove_node_is_idempotent():
    ring = ConsistentHashRing(["a", "b"])
    ring.remove_node("missing")
    ring.remove_node("a")
    ring.remove_node("a")

    assert ring.get_all_nodes() == ["b"]
    assert ring.positions("a") == []
    assert len(ring.positions()) == DEFAULT_REPLICAS


def test_integer_node_ids_are_normalised():
    ring = ConsistentHashRing([1, 2])
    assert ring.get_all_nodes() == ["1", "2"]
    assert 1 in ring
    ring.remove_node(1)
    assert ring.get_all_nodes() == ["2"]


def test_lookup_is_deterministic():
    ring = ConsistentHashRing(["a", "b", "c"])
    first = assignments(ring, SAMPLE_KEYS[:500])

    for _ in range(3):
        assert assignments(ring, SAMPLE_KEYS[:500]) == first

    # a second ring with the same membership agrees
    assert assignments(ConsistentHashRing(["c", "a", "b"]), SAMPLE_KEYS[:500]) == first


def test_str_and_bytes_keys_agree():
    ring = ConsistentHashRing(["a", "b", "c"])
    for key in SAMPLE_KEYS[:100]:
        assert ring.get_node(key) == ring.get_node(key.encode("utf-8"))


def test_lookup_only_returns_live_nodes():
    ring = ConsistentHashRing(["a", "b", "c", "d"], replicas=10)
    ring.remove_node("b")
    ring.add_node("e")
    ring.remove_node("d")

    live = set(ring.get_all_nodes())
    assert live == {"a", "c", "e"}
    assert set(assignments(ring).values()) <= live


def test_lookup_picks_next_position_clockwise():
    table = {"a:0": 100, "b:0": 200, "c:0": 300, "k1": 50, "k2": 100, "k3": 150, "k4": 300}
    ring = ConsistentHashRing(["a", "b", "c"], replicas=1, hash_fn=fixed_hash(table))

    assert ring.get_node("k1") == "a"
    assert ring.get_node("k2") == "a"
    assert ring.get_node("k3") == "b"
    assert ring.get_node("k4") == "c"


def test_lookup_wraps_past_largest_position():
    table = {"a:0": 100, "b:0": 200, "high": 250, "top": 2 ** 128 - 1}
    ring = ConsistentHashRing(["a", "b"], replicas=1, hash_fn=fixed_hash(table))

    assert ring.get_node("high") == "a"
    assert ring.get_node("top") == "a"


def test_single_node_owns_every_key():
    ring = ConsistentHashRing(["only"], replicas=1)

    keys = SAMPLE_KEYS[:2000]
    assert set(assignments(ring, keys).values()) == {"only"}


def test_colliding_replicas_break_ties_by_node_id():
    table = {"b:0": 100, "a:0": 100, "c:0": 200, "k": 50}
    ring = ConsistentHashRing(["b", "c"], replicas=1, hash_fn=fixed_hash(table))
    assert ring.get_node("k") == "b"

    ring.add_node("a")
    assert ring.get_node("k") == "a"
    assert ring.positions() == [100, 200]
    assert ring.get_nodes("k", 3) == ["a", "b", "c"]

    # the loser of the tie is still placed once the winner leaves
    ring.remove_node("a")
    assert ring.get_node("k") == "b"
    ring.remove_node("b")
    assert ring.get_node("k") == "c"


def test_adding_node_moves_keys_only_to_new_node():
    ring = ConsistentHashRing(["A", "B", "C"], replicas=100)
    before = assignments(ring)

    ring.add_node("D")
    after = assignments(ring)

    moved = [key for key in SAMPLE_KEYS if before[key] != after[key]]
    assert all(after[key] == "D" for key in moved)
    assert 0.10 <= len(moved) / len(SAMPLE_KEYS) <= 0.40


def test_removing_node_moves_only_its_keys_to_ring_neighbours():
    ring = ConsistentHashRing(["A", "B", "C", "D"], replicas=100)
    before = assignments(ring)
    successors = {key: ring.get_nodes(key, 2)[1] for key in SAMPLE_KEYS if before[key] == "B"}

    ring.remove_node("B")
    after = assignments(ring)

    for key in SAMPLE_KEYS:
        if before[key] == "B":
            assert after[key] == successors[key]
        else:
            assert after[key] == before[key]


def test_virtual_replicas_even_out_load():
    nodes = [f"node{i}" for i in range(5)]
    ring = ConsistentHashRing(nodes, replicas=100)

    counts = {}
    for node in assignments(ring).values():
        counts[node] = counts.get(node, 0) + 1

    fair_share = len(SAMPLE_KEYS) / len(nodes)
    assert set(counts) == set(nodes)
    assert max(counts.values()) < 2 * fair_share


def test_ownership_covers_whole_ring():
    ring = ConsistentHashRing(["a", "b", "c"], replicas=50)
    shares = ring.ownership()

    assert set(shares) == {"a", "b", "c"}
    assert sum(shares.values()) == pytest.approx(1.0)
    assert all(0.15 < share < 0.5 for share in shares.values())

    assert ConsistentHashRing().ownership() == {}
    assert ConsistentHashRing(["solo"], replicas=1).ownership() == {"solo": 1.0}


def test_ownership_uses_arc_lengths():
    table = {"a:0": 0, "b:0": 2 ** 126}
    ring = ConsistentHashRing(["a", "b"], replicas=1, hash_fn=fixed_hash(table))

    # b owns (0, 2**126], a owns the wraparound arc
    assert ring.ownership() == {"a": 0.75, "b": 0.25}


def test_shard_lookup_scenario():
    ring = ConsistentHashRing(["shard1", "shard2", "shard3"], replicas=3)

    owner = ring.get_node("user:12345")
    assert owner in {"shard1", "shard2", "shard3"}
    assert ring.get_node("user:12345") == owner

    ring.add_node("shard4")
    new_owner = ring.get_node("user:12345")
    assert new_owner in {owner, "shard4"}
    assert ring.get_node("user:12345") == new_owner

    ring.remove_node("shard4")
    assert ring.get_node("user:12345") == owner


def test_dunder_helpers():
    ring = ConsistentHashRing(["b", "a"], replicas=2)

    assert len(ring) == 2
    assert "a" in ring and "z" not in ring
    assert list(ring) == ["a", "b"]
    assert "replicas=2" in repr(ring)
    assert sorted(node for _, node in ring.items()) == ["a", "a", "b", "b"]
