import threading
from contextlib import contextmanager

from .hash_ring import DEFAULT_REPLICAS, ConsistentHashRing


class SynchronizedHashRing:
    """Thread-safe facade over a :class:`ConsistentHashRing`.

    A single re-entrant lock guards every call. Lookups and membership
    changes are serialised, which is enough when membership changes are
    rare compared to routing decisions.
    """

    def __init__(self, ring=None, **ring_kwargs):
        self.ring = ring if ring is not None else ConsistentHashRing(**ring_kwargs)
        self._lock = threading.RLock()

    @contextmanager
    def batch(self):
        """Hold the lock across several calls so readers see them as one change."""
        with self._lock:
            yield self.ring

    @property
    def replicas(self):
        return self.ring.replicas

    def add_node(self, node_id, replicas=None):
        with self._lock:
            self.ring.add_node(node_id, replicas)

    def remove_node(self, node_id):
        with self._lock:
            self.ring.remove_node(node_id)

    def get_node(self, key):
        with self._lock:
            return self.ring.get_node(key)

    def get_nodes(self, key, count=DEFAULT_REPLICAS):
        with self._lock:
            return self.ring.get_nodes(key, count)

    def get_all_nodes(self):
        with self._lock:
            return self.ring.get_all_nodes()

    def replicas_of(self, node_id):
        with self._lock:
            return self.ring.replicas_of(node_id)

    def position_of(self, key):
        return self.ring.position_of(key)

    def ownership(self):
        with self._lock:
            return self.ring.ownership()

    def __len__(self):
        with self._lock:
            return len(self.ring)

    def __contains__(self, node_id):
        with self._lock:
            return node_id in self.ring

    def __iter__(self):
        return iter(self.get_all_nodes())
