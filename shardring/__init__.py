from .hash_ring import (
    DEFAULT_REPLICAS,
    ConsistentHashRing,
    EmptyRingError,
    NodeId,
    Position,
    as_node_id,
    md5_position,
)
from .shard_store import ShardedStore, ShardStore
from .sync import SynchronizedHashRing

__all__ = [
    "DEFAULT_REPLICAS",
    "ConsistentHashRing",
    "EmptyRingError",
    "NodeId",
    "Position",
    "as_node_id",
    "ShardStore",
    "ShardedStore",
    "SynchronizedHashRing",
    "md5_position",
]
