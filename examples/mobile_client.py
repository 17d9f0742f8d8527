#!/usr/bin/env python3
"""
Connect to the relay as a mobile device and print every broadcast.

Sends a heartbeat every few seconds and disconnects after --seconds.
Run with: python examples/mobile_client.py --seconds 30

Requires: pip install websockets
"""

import argparse
import asyncio
import json

import websockets

from _common import ws_url


async def run(device_id: str, device_name: str, seconds: float, heartbeat: float):
    url = ws_url(f"type=mobile&deviceId={device_id}&deviceName={device_name.replace(' ', '%20')}")

    async with websockets.connect(url) as ws:
        hello = json.loads(await ws.recv())
        print(f"Connected to server as mobile client ({hello['client_id']})")

        async def beat():
            while True:
                await asyncio.sleep(heartbeat)
                await ws.send(json.dumps({"type": "heartbeat"}))

        async def listen():
            async for raw in ws:
                event = json.loads(raw)
                if event["type"] == "heartbeat_ack":
                    continue
                print(f"  ← {event['type']}: {event}")

        tasks = [asyncio.create_task(beat()), asyncio.create_task(listen())]
        try:
            await asyncio.wait(tasks, timeout=seconds)
        finally:
            for task in tasks:
                task.cancel()

    print("Disconnected from server")


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--device-id", default="TEST_DEVICE_001")
    parser.add_argument("--device-name", default="Test Mobile Client")
    parser.add_argument("--seconds", type=float, default=5.0)
    parser.add_argument("--heartbeat", type=float, default=2.0)
    args = parser.parse_args()
    asyncio.run(run(args.device_id, args.device_name, args.seconds, args.heartbeat))


if __name__ == "__main__":
    main()
