import logging
import threading

from .hash_ring import ConsistentHashRing, EmptyRingError, as_node_id

logger = logging.getLogger(__name__)


class ShardStore:
    def __init__(self, node_id):
        self.node_id = node_id
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value):
        self.data[key] = value

    def delete(self, key):
        if key in self.data:
            del self.data[key]
            return True
        return False

    def size(self):
        return len(self.data)

    def keys(self):
        return list(self.data.keys())


class ShardedStore:
    """Key/value store spread over the nodes of a hash ring.

    The ring only answers where a key lives; this class moves the data
    when membership changes. Adding a node pulls over exactly the keys the
    new node now owns, removing one hands its keys to their next owner.

    One lock covers routed reads, writes and migrations, so no thread sees
    a key routed to a shard it has not reached yet.
    """

    def __init__(self, ring=None):
        self.ring = ring if ring is not None else ConsistentHashRing()
        self.shards = {node_id: ShardStore(node_id) for node_id in self.ring.get_all_nodes()}
        self._lock = threading.RLock()

    def locate(self, key):
        return self.ring.get_node(key)

    def _shard_for(self, key):
        return self.shards[self.locate(key)]

    def get(self, key):
        with self._lock:
            return self._shard_for(key).get(key)

    def put(self, key, value):
        with self._lock:
            shard = self._shard_for(key)
            shard.put(key, value)
            return shard.node_id

    def delete(self, key):
        with self._lock:
            return self._shard_for(key).delete(key)

    def _rehome(self, shard):
        # Copy before delete, so a failed lookup never drops a key.
        moved = 0
        for key in shard.keys():
            owner = self.locate(key)
            if owner == shard.node_id:
                continue
            self.shards[owner].put(key, shard.data[key])
            shard.delete(key)
            moved += 1
        return moved

    def add_node(self, node_id, replicas=None):
        """Add a node to the ring and migrate the keys whose owner changed.

        Returns the number of keys moved.
        """
        node_id = as_node_id(node_id)
        with self._lock:
            self.ring.add_node(node_id, replicas)
            shard = self.shards.setdefault(node_id, ShardStore(node_id))

            # A re-added node may shrink, so its own shard is checked too.
            moved = sum(self._rehome(other) for other in list(self.shards.values()))

        logger.info("Node %s joined, moved %d keys (%d now local)", node_id, moved, shard.size())
        return moved

    def remove_node(self, node_id):
        """Remove a node and redistribute its keys. Unknown nodes move nothing.

        Refuses with :class:`EmptyRingError` to remove the last node while it
        still holds keys, since they would have nowhere to go.
        """
        node_id = as_node_id(node_id)
        with self._lock:
            shard = self.shards.get(node_id)
            if shard is None:
                self.ring.remove_node(node_id)
                return 0
            if len(self.ring) == 1 and shard.size():
                raise EmptyRingError()

            self.ring.remove_node(node_id)
            del self.shards[node_id]
            moved = self._rehome(shard)

        logger.info("Node %s left, moved %d keys", node_id, moved)
        return moved

    def stats(self):
        with self._lock:
            return {node_id: shard.size() for node_id, shard in sorted(self.shards.items())}

    def size(self):
        with self._lock:
            return sum(shard.size() for shard in self.shards.values())
