#!/usr/bin/env python3
"""
Example Agent - Simulated Minecraft Server

This agent stands in for the server plugin:
1. Connects to the hub and authenticates with serverId/apiKey
2. Sends a heartbeat ping every few seconds
3. Reports server state (online players) and a few player events
4. Logs whitelist_add / whitelist_remove commands pushed by the hub

Usage:
    python scripts/example_agent.py [server_id] [api_key]

The hub must have the server configured, e.g. in data/config.json:
    {"servers": {"alpha": {"apiKey": "alpha-secret"}}}

Then trigger a command from another shell:
    curl -X POST -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \
         -d '{"username": "Steve", "action": "add"}' \
         http://localhost:3001/api/hub/servers/alpha/whitelist
"""

import asyncio
import json
import logging
import os
import random
import sys

import websockets

HUB_URL = os.getenv("WLH_HUB_URL", "ws://localhost:3001/ws")
SERVER_ID = sys.argv[1] if len(sys.argv) > 1 else "default"
API_KEY = sys.argv[2] if len(sys.argv) > 2 else os.getenv("WLH_AGENT_API_KEY", "")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("example_agent")

whitelist: set[str] = set()
players: list[str] = []


async def heartbeat(ws) -> None:
    while True:
        await asyncio.sleep(5)
        await ws.send(json.dumps({"type": "ping"}))


async def report_activity(ws) -> None:
    """Simulate players joining and leaving."""
    while True:
        await asyncio.sleep(random.uniform(3, 8))

        if whitelist and (not players or random.random() < 0.6):
            candidates = [name for name in whitelist if name not in players]
            if candidates:
                name = random.choice(candidates)
                players.append(name)
                await ws.send(json.dumps({
                    "type": "event",
                    "eventType": "player_join",
                    "payload": {"player": name},
                }))
        elif players:
            name = players.pop(random.randrange(len(players)))
            await ws.send(json.dumps({
                "type": "event",
                "eventType": "player_quit",
                "payload": {"player": name},
            }))

        await ws.send(json.dumps({
            "type": "state",
            "payload": {"online": len(players), "players": list(players), "whitelisted": len(whitelist)},
        }))


def handle_command(message: dict) -> None:
    username = message.get("username")
    if message.get("type") == "whitelist_add":
        whitelist.add(username)
        logger.info(f"Whitelisted {username} (serverId={message.get('serverId')})")
    elif message.get("type") == "whitelist_remove":
        whitelist.discard(username)
        logger.info(f"Removed {username} from whitelist")


async def main():
    logger.info(f"Connecting to {HUB_URL} as {SERVER_ID}")

    async with websockets.connect(HUB_URL) as ws:
        await ws.send(json.dumps({"type": "auth", "serverId": SERVER_ID, "apiKey": API_KEY}))

        result = json.loads(await ws.recv())
        if result.get("type") != "auth_result" or not result.get("ok"):
            logger.error(f"Authentication failed: {result.get('error')}")
            return

        logger.info("Authenticated")

        tasks = [
            asyncio.create_task(heartbeat(ws)),
            asyncio.create_task(report_activity(ws)),
        ]
        try:
            async for raw in ws:
                message = json.loads(raw)
                if message.get("type") == "pong":
                    continue
                handle_command(message)
        except websockets.ConnectionClosed as e:
            logger.warning(f"Connection closed: {e}")
        finally:
            for task in tasks:
                task.cancel()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
