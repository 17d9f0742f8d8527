"""
Shared helpers for Withdrawal Relay examples.
"""

import os
import sys
import uuid

import httpx

HOST = os.environ.get("WRELAY_API_URL", "http://localhost:3000").rstrip("/")
BASE = f"{HOST}/api/v1"


def check_backend() -> dict:
    """Verify the relay is reachable and print its dependency status."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Relay not reachable at {BASE}")
        print("Start it with:  wrelay serve --reload")
        sys.exit(1)

    health = resp.json()
    print("Relay health:")
    print(f"  Postgres: {health['postgres']}")
    print(f"  Redis:    {health['redis']}")
    print(f"  Clients:  {health['clients']}")

    if health["postgres"] != "ok":
        print("\nERROR: Database is not connected. Check WRELAY_DATABASE_URL.")
        sys.exit(1)
    return health


def fake_withdrawal(username: str = "demo-user", amount: int = 500) -> dict:
    """A withdrawal shaped like the ones the payment worker sends."""
    wid = str(uuid.uuid4())
    return {
        "id": wid,
        "transactionId": f"txn-{wid[:8]}",
        "uid": f"uid-{uuid.uuid4().hex[:6]}",
        "amount": amount,
        "paymentMethod": "bkash",
        "paymentNumber": "01700000000",
        "username": username,
    }


def ws_url(query: str = "") -> str:
    url = HOST.replace("https://", "wss://").replace("http://", "ws://") + "/ws"
    return f"{url}?{query}" if query else url
