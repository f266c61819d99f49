#!/usr/bin/env python3

import asyncio
import aiohttp
import sys
from typing import Optional

class ShardRingShell:
    def __init__(self, router: str = None):
        self.router = (router or "http://localhost:8000").rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None
        
    async def start(self):
        """Start the shell session"""
        self.session = aiohttp.ClientSession()
        
        print("Welcome to the Shard Ring Shell!")
        print(f"Connected to router: {self.router}")
        self.print_commands()
        
        while True:
            try:
                command = input("shardring> ").strip()
                
                if not command:
                    continue
                    
                if command.lower() in ['quit', 'exit', 'q']:
                    break
                    
                await self.execute_command(command)
                
            except KeyboardInterrupt:
                print("\nGoodbye!")
                break
            except EOFError:
                break
        
        await self.session.close()
    
    def print_commands(self):
        print("\nCommands:")
        print("  route <key> [count]         - Show the node (and preference list) for a key")
        print("  put <key> <value>           - Store a key-value pair on its shard")
        print("  get <key>                   - Retrieve a value")
        print("  delete <key>                - Delete a key")
        print("  add <node_id> [replicas]    - Add a node to the ring")
        print("  remove <node_id>            - Remove a node from the ring")
        print("  status                      - Show nodes and key counts")
        print("  dist                        - Show ring ownership per node")
        print("  help                        - Show this help")
        print("  quit                        - Exit the shell")
        print("=" * 60)
    
    async def execute_command(self, command: str):
        """Execute a shell command"""
        parts = command.split()
        if not parts:
            return
            
        cmd = parts[0].lower()
        
        try:
            if cmd == 'route' and len(parts) >= 2:
                count = int(parts[2]) if len(parts) > 2 else None
                await self.route(parts[1], count)
                
            elif cmd == 'put' and len(parts) >= 3:
                await self.put(parts[1], " ".join(parts[2:]))
                
            elif cmd == 'get' and len(parts) >= 2:
                await self.get(parts[1])
                
            elif cmd == 'delete' and len(parts) >= 2:
                await self.delete(parts[1])
                
            elif cmd == 'add' and len(parts) >= 2:
                replicas = int(parts[2]) if len(parts) > 2 else None
                await self.add_node(parts[1], replicas)
                
            elif cmd == 'remove' and len(parts) >= 2:
                await self.remove_node(parts[1])
                
            elif cmd == 'status':
                await self.status()
                
            elif cmd == 'dist':
                await self.distribution()
                
            elif cmd == 'help':
                self.print_commands()
                
            else:
                print("Invalid command. Type 'help' for available commands.")
                
        except ValueError as e:
            print(f"Invalid argument: {e}")
        except aiohttp.ClientError as e:
            print(f"Network error: {e}")
    
    async def route(self, key: str, count: int = None):
        """Show which node owns a key"""
        params = {"count": count} if count is not None else {}
        async with self.session.get(f"{self.router}/route/{key}", params=params) as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print(f"   Key: {result['key']}")
                print(f"   Node: {result['node']}")
                print(f"   Position: {result['position']}")
                if 'nodes' in result:
                    print(f"   Preference list: {result['nodes']}")
            else:
                print(f"ROUTE failed: {result.get('error', 'Unknown error')}")
    
    async def put(self, key: str, value: str):
        """Store a key-value pair"""
        async with self.session.put(f"{self.router}/keys/{key}", json={"value": value}) as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print("PUT successful!")
                print(f"   Key: {result['key']}")
                print(f"   Value: {result['value']}")
                print(f"   Stored on: {result['node']}")
            else:
                print(f"PUT failed: {result.get('error', 'Unknown error')}")
    
    async def get(self, key: str):
        """Retrieve a value"""
        async with self.session.get(f"{self.router}/keys/{key}") as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print("GET successful!")
                print(f"   Key: {result['key']}")
                print(f"   Value: {result['value']}")
                print(f"   Source: {result['node']}")
            else:
                print(f"GET failed: {result.get('error', 'Unknown error')}")
    
    async def delete(self, key: str):
        """Delete a key"""
        async with self.session.delete(f"{self.router}/keys/{key}") as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print(f"DELETE successful: {result['message']} (from {result['node']})")
            else:
                print(f"DELETE failed: {result.get('error', 'Unknown error')}")
    
    async def add_node(self, node_id: str, replicas: int = None):
        """Add a node to the ring"""
        data = {"node_id": node_id}
        if replicas is not None:
            data["replicas"] = replicas
        
        async with self.session.post(f"{self.router}/admin/nodes", json=data) as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print(f"{result['message']} with {result['replicas']} replicas")
                print(f"   Keys moved: {result['moved_keys']}")
                print(f"   Nodes: {result['nodes']}")
            else:
                print(f"ADD failed: {result.get('error', 'Unknown error')}")
    
    async def remove_node(self, node_id: str):
        """Remove a node from the ring"""
        async with self.session.delete(f"{self.router}/admin/nodes/{node_id}") as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print(result['message'])
                print(f"   Keys moved: {result['moved_keys']}")
                print(f"   Nodes: {result['nodes']}")
            else:
                print(f"REMOVE failed: {result.get('error', 'Unknown error')}")
    
    async def status(self):
        """Show router status"""
        async with self.session.get(f"{self.router}/admin/status") as resp:
            result = await resp.json()
            
            if resp.status == 200:
                print(f"Router: {result['address']}")
                print(f"   Default replicas: {result['default_replicas']}")
                print(f"   Total keys: {result['total_keys']}")
                for node_id, info in result['nodes'].items():
                    print(f"   {node_id}: {info.get('replicas')} replicas, {info.get('keys', 0)} keys")
            else:
                print(f"Status failed: {resp.status}")
    
    async def distribution(self):
        """Show how much of the ring each node owns"""
        async with self.session.get(f"{self.router}/admin/distribution") as resp:
            result = await resp.json()
            
            if resp.status == 200:
                for node_id, share in sorted(result['ownership'].items()):
                    keys = result['keys'].get(node_id, 0)
                    print(f"   {node_id}: {share:6.1%} of ring, {keys} keys")
            else:
                print(f"Distribution failed: {resp.status}")

async def main():
    """Main entry point"""
    router = sys.argv[1] if len(sys.argv) > 1 else None
    
    shell = ShardRingShell(router)
    await shell.start()

if __name__ == "__main__":
    asyncio.run(main())
