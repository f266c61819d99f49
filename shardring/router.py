import logging

from aiohttp import web

from .config import Settings
from .hash_ring import ConsistentHashRing, EmptyRingError
from .shard_store import ShardedStore
from .sync import SynchronizedHashRing

logger = logging.getLogger(__name__)


class ShardRouter:
    """HTTP front end that routes keys to shards and manages membership."""

    def __init__(self, nodes=(), replicas=None, host="localhost", port=8000):
        ring_kwargs = {} if replicas is None else {"replicas": replicas}
        self.ring = SynchronizedHashRing(ConsistentHashRing(nodes, **ring_kwargs))
        self.store = ShardedStore(self.ring)
        self.host = host
        self.port = port
        self.address = f"http://{host}:{port}"
        self.runner = None
        self.app = self._create_app()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(settings.nodes, settings.replicas, settings.host, settings.port)

    def _create_app(self):
        app = web.Application()

        app.router.add_get('/health', self.handle_health)
        app.router.add_get('/route/{key}', self.handle_route)

        app.router.add_get('/keys/{key}', self.handle_get)
        app.router.add_put('/keys/{key}', self.handle_put)
        app.router.add_delete('/keys/{key}', self.handle_delete)

        app.router.add_post('/admin/nodes', self.handle_add_node)
        app.router.add_delete('/admin/nodes/{node_id}', self.handle_remove_node)
        app.router.add_get('/admin/status', self.handle_status)
        app.router.add_get('/admin/distribution', self.handle_distribution)

        return app

    @staticmethod
    def _no_nodes(key=None):
        return web.json_response({"error": str(EmptyRingError(key))}, status=503)

    async def handle_health(self, request):
        return web.json_response({"status": "ok"})

    async def handle_route(self, request):
        key = request.match_info['key']

        try:
            count = int(request.query['count']) if 'count' in request.query else None
            if count is not None and count < 1:
                raise ValueError("count must be positive")
        except ValueError as e:
            return web.json_response({"error": f"Invalid count: {e}"}, status=400)

        try:
            with self.ring.batch() as ring:
                result = {
                    "key": key,
                    "node": ring.get_node(key),
                    "position": format(ring.position_of(key), "x"),
                }
                if count is not None:
                    result["nodes"] = ring.get_nodes(key, count)
        except EmptyRingError:
            return self._no_nodes(key)

        return web.json_response(result)

    async def handle_get(self, request):
        key = request.match_info['key']

        try:
            node_id = self.store.locate(key)
            value = self.store.get(key)
        except EmptyRingError:
            return self._no_nodes(key)

        if value is None:
            return web.json_response({"error": "Key not found", "node": node_id}, status=404)
        return web.json_response({"key": key, "value": value, "node": node_id})

    async def handle_put(self, request):
        key = request.match_info['key']

        try:
            data = await request.json()
        except ValueError as e:
            return web.json_response({"error": f"Invalid JSON: {e}"}, status=400)

        value = data.get('value') if isinstance(data, dict) else None
        if value is None:
            return web.json_response({"error": "Missing 'value' in request"}, status=400)

        try:
            node_id = self.store.put(key, str(value))
        except EmptyRingError:
            return self._no_nodes(key)

        return web.json_response({"key": key, "value": str(value), "node": node_id})

    async def handle_delete(self, request):
        key = request.match_info['key']

        try:
            node_id = self.store.locate(key)
            deleted = self.store.delete(key)
        except EmptyRingError:
            return self._no_nodes(key)

        if not deleted:
            return web.json_response({"error": "Key not found", "node": node_id}, status=404)
        return web.json_response({"message": f"Key '{key}' deleted", "node": node_id})

    async def handle_add_node(self, request):
        try:
            data = await request.json()
        except ValueError as e:
            return web.json_response({"error": f"Invalid JSON: {e}"}, status=400)

        node_id = data.get('node_id') if isinstance(data, dict) else None
        if not node_id:
            return web.json_response({"error": "node_id required"}, status=400)

        try:
            moved = self.store.add_node(node_id, data.get('replicas'))
        except ValueError as e:
            return web.json_response({"error": str(e)}, status=400)

        logger.info("Node %s added through %s", node_id, request.remote)
        return web.json_response({
            "message": f"Node {node_id} added",
            "node_id": str(node_id),
            "replicas": self.ring.replicas_of(node_id),
            "moved_keys": moved,
            "nodes": self.ring.get_all_nodes(),
        })

    async def handle_remove_node(self, request):
        node_id = request.match_info['node_id']

        try:
            moved = self.store.remove_node(node_id)
        except EmptyRingError:
            return web.json_response(
                {"error": f"Node {node_id} is the last node and still holds keys"}, status=409
            )

        return web.json_response({
            "message": f"Node {node_id} removed",
            "moved_keys": moved,
            "nodes": self.ring.get_all_nodes(),
        })

    async def handle_status(self, request):
        with self.ring.batch() as ring:
            nodes = {
                node_id: {"replicas": ring.replicas_of(node_id)}
                for node_id in ring.get_all_nodes()
            }
            default_replicas = ring.replicas
        for node_id, keys in self.store.stats().items():
            nodes.setdefault(node_id, {})["keys"] = keys

        return web.json_response({
            "address": self.address,
            "nodes": nodes,
            "default_replicas": default_replicas,
            "total_keys": self.store.size(),
        })

    async def handle_distribution(self, request):
        return web.json_response({
            "ownership": self.ring.ownership(),
            "keys": self.store.stats(),
        })

    async def start(self):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()

        logger.info("Shard router running on %s with nodes %s", self.address, self.ring.get_all_nodes())

    async def stop(self):
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
