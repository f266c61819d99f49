import asyncio
import logging

from shardring.config import load_settings
from shardring.router import ShardRouter

async def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    router = ShardRouter.from_settings(settings)
    await router.start()

    print(f"Shard router running on {router.address}")
    print(f"   Nodes: {', '.join(router.ring.get_all_nodes())}")
    print(f"   Replicas per node: {settings.replicas}")
    print("Routes:")
    print("  GET    /route/{key}[?count=n]   - Which node owns a key")
    print("  GET    /keys/{key}              - Get a value")
    print("  PUT    /keys/{key}              - Set a value")
    print("  DELETE /keys/{key}              - Delete a key")
    print("  POST   /admin/nodes             - Add a node")
    print("  DELETE /admin/nodes/{node_id}   - Remove a node")
    print("  GET    /admin/status            - Nodes and key counts")
    print("  GET    /admin/distribution      - Share of the ring per node")

    print("\nTry these commands in another terminal:")
    print(f"curl {router.address}/route/user:12345")
    print(f"curl -X PUT {router.address}/keys/user:12345 -H 'Content-Type: application/json' -d '{{\"value\": \"Alice\"}}'")
    print(f"curl -X POST {router.address}/admin/nodes -H 'Content-Type: application/json' -d '{{\"node_id\": \"shard4\"}}'")

    try:
        while True:
            await asyncio.sleep(1)
    finally:
        await router.stop()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutting down...")
