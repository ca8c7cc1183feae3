#!/usr/bin/env python3
"""
WebSocket client for DroidDesk mirroring events.

Usage:
    python3 -m droiddesk.ws_client                  # localhost:8000
    python3 -m droiddesk.ws_client 10.10.10.48:8000
"""

import asyncio
import json
import sys

import websockets


def format_event(event: dict) -> str:
    if "error" in event:
        return f"❌ Error: {event['error']}"
    return f"[{event.get('serial', '?')}] {event.get('event', 'event')}: {event.get('message', '')}"


async def connect_events(uri="ws://localhost:8000/ws/events"):
    """Connect to the mirroring event stream and print each event."""
    print(f"Connecting to {uri}...")
    async with websockets.connect(uri) as websocket:
        print("✓ Connected to event stream")
        print("Waiting for mirroring events (Ctrl+C to stop)...\n")

        try:
            while True:
                data = await websocket.recv()
                print(format_event(json.loads(data)))
        except KeyboardInterrupt:
            print("\n✓ Disconnected from event stream")


async def main():
    if len(sys.argv) > 1 and sys.argv[1] in ("-h", "--help"):
        print("Usage: python3 -m droiddesk.ws_client [host:port]")
        return

    host_port = sys.argv[1] if len(sys.argv) > 1 else "localhost:8000"
    await connect_events(f"ws://{host_port}/ws/events")


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
