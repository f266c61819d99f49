import hashlib
import logging
from typing import Callable, Dict, Iterable, List, NewType, Optional, Tuple, Union

from sortedcontainers import SortedDict

logger = logging.getLogger(__name__)

NodeId = NewType("NodeId", str)
Position = NewType("Position", int)

Key = Union[str, bytes]

DEFAULT_REPLICAS = 3
HASH_BITS = 128


class EmptyRingError(LookupError):
    """Raised when a lookup is made against a ring with no nodes."""

    def __init__(self, key=None):
        self.key = key
        if key is None:
            message = "hash ring has no nodes"
        else:
            message = f"hash ring has no nodes to place key {key!r}"
        super().__init__(message)


def md5_position(data: Key) -> Position:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return Position(int(hashlib.md5(data).hexdigest(), 16))


def as_node_id(node_id) -> NodeId:
    if isinstance(node_id, bytes):
        return NodeId(node_id.decode("utf-8"))
    return NodeId(str(node_id))


def _check_replicas(replicas):
    if isinstance(replicas, bool) or not isinstance(replicas, int) or replicas < 1:
        raise ValueError(f"replicas must be a positive integer, got {replicas!r}")
    return replicas


class ConsistentHashRing:
    """Consistent hashing ring with virtual replicas.

    Every physical node is placed on the ring ``replicas`` times, at the hash
    of ``"<node_id>:<i>"``. A key belongs to the first replica found walking
    clockwise from the key's own hash, wrapping past the largest position.

    Positions live in a single ``SortedDict`` mapping each position to the
    sorted tuple of nodes placed there, so position order and ownership can
    never drift apart. Colliding replicas share a position; the smallest
    node id wins lookups and the others stay queued behind it.

    The ring does no locking. Share it between threads through
    :class:`shardring.sync.SynchronizedHashRing`.
    """

    def __init__(
        self,
        nodes: Optional[Iterable] = None,
        replicas: int = DEFAULT_REPLICAS,
        hash_fn: Optional[Callable[[Key], int]] = None,
        hash_bits: int = HASH_BITS,
    ):
        self.replicas = _check_replicas(replicas)
        self.hash_fn = hash_fn or md5_position
        self.hash_space = 1 << hash_bits
        self._ring: SortedDict = SortedDict()  # position -> tuple of node ids
        self._nodes: Dict[NodeId, int] = {}  # node id -> replica count

        for node in nodes or ():
            self.add_node(node)

    def _hash(self, key: Key) -> Position:
        return Position(self.hash_fn(key) % self.hash_space)

    def _replica_positions(self, node_id: NodeId, replicas: int) -> List[Position]:
        return [self._hash(f"{node_id}:{i}") for i in range(replicas)]

    def add_node(self, node_id, replicas: Optional[int] = None) -> None:
        """Place a node on the ring.

        Adding a node that is already present replaces its replicas, so a
        re-add with a different ``replicas`` value resizes it.
        """
        node_id = as_node_id(node_id)
        replicas = self.replicas if replicas is None else _check_replicas(replicas)

        if node_id in self._nodes:
            self.remove_node(node_id)

        for position in self._replica_positions(node_id, replicas):
            owners = self._ring.get(position, ())
            if node_id not in owners:
                if owners:
                    logger.warning(
                        "Replica of %s collides with %s at position %d", node_id, owners, position
                    )
                self._ring[position] = tuple(sorted(owners + (node_id,)))
        self._nodes[node_id] = replicas

        logger.debug("Added node %s with %d replicas", node_id, replicas)

    def remove_node(self, node_id) -> None:
        """Take a node off the ring. Unknown nodes are ignored."""
        node_id = as_node_id(node_id)
        replicas = self._nodes.get(node_id)
        if replicas is None:
            return

        for position in self._replica_positions(node_id, replicas):
            owners = self._ring.get(position)
            if not owners or node_id not in owners:
                continue
            remaining = tuple(owner for owner in owners if owner != node_id)
            if remaining:
                self._ring[position] = remaining
            else:
                del self._ring[position]
        del self._nodes[node_id]

        logger.debug("Removed node %s", node_id)

    def _start_index(self, key: Key) -> int:
        if not self._ring:
            raise EmptyRingError(key)
        idx = self._ring.bisect_left(self._hash(key))
        if idx == len(self._ring):
            idx = 0
        return idx

    def get_node(self, key: Key) -> NodeId:
        """Return the node that owns ``key``.

        Raises :class:`EmptyRingError` when no node is registered.
        """
        _, owners = self._ring.peekitem(self._start_index(key))
        return owners[0]

    def get_nodes(self, key: Key, count: int = DEFAULT_REPLICAS) -> List[NodeId]:
        """Return up to ``count`` distinct nodes for ``key`` in clockwise order.

        The first entry is always ``get_node(key)``; the rest are the nodes a
        replicated store would write copies to.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValueError(f"count must be a positive integer, got {count!r}")

        start_idx = self._start_index(key)
        wanted = min(count, len(self._nodes))
        result: List[NodeId] = []
        seen = set()

        for i in range(len(self._ring)):
            _, owners = self._ring.peekitem((start_idx + i) % len(self._ring))
            for node_id in owners:
                if node_id not in seen:
                    seen.add(node_id)
                    result.append(node_id)
            if len(result) >= wanted:
                break

        return result[:wanted]

    def get_all_nodes(self) -> List[NodeId]:
        return sorted(self._nodes)

    def replicas_of(self, node_id) -> int:
        return self._nodes[as_node_id(node_id)]

    def positions(self, node_id=None) -> List[Position]:
        if node_id is None:
            return list(self._ring.keys())
        node_id = as_node_id(node_id)
        return [position for position, owners in self._ring.items() if node_id in owners]

    def position_of(self, key: Key) -> Position:
        return self._hash(key)

    def ownership(self) -> Dict[NodeId, float]:
        """Fraction of the hash space owned by each node.

        The arc ending at a position belongs to the node that wins lookups
        there; the first position also takes the wraparound arc.
        """
        shares: Dict[NodeId, int] = {node_id: 0 for node_id in self._nodes}
        positions = list(self._ring.keys())
        if not positions:
            return {}

        if len(positions) == 1:
            shares[self._ring[positions[0]][0]] = self.hash_space
        else:
            for i, position in enumerate(positions):
                arc = (position - positions[i - 1]) % self.hash_space
                shares[self._ring[position][0]] += arc

        return {node_id: share / self.hash_space for node_id, share in shares.items()}

    def items(self) -> List[Tuple[Position, NodeId]]:
        return [(position, owners[0]) for position, owners in self._ring.items()]

    def __len__(self):
        return len(self._nodes)

    def __contains__(self, node_id):
        return as_node_id(node_id) in self._nodes

    def __iter__(self):
        return iter(self.get_all_nodes())

    def __repr__(self):
        return (
            f"{type(self).__name__}(nodes={self.get_all_nodes()!r}, "
            f"replicas={self.replicas}, positions={len(self._ring)})"
        )
