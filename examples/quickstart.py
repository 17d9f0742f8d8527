#!/usr/bin/env python3
"""
Withdrawal Relay Quickstart — plays the payment worker and the admin app.

Posts a withdrawal (as the worker would), lists pending withdrawals,
completes it (as an admin would), and prints its audit trail.
Run with: python examples/quickstart.py

Requires: pip install httpx
Relay must be running: http://localhost:3000
Open examples/mobile_client.py in another terminal to watch the broadcasts.
"""

import httpx

from _common import BASE, check_backend, fake_withdrawal


def main():
    check_backend()
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Worker: new withdrawal ────────────────────────────────────
    print("\n1. Worker posts a withdrawal...")
    withdrawal = fake_withdrawal(username="rahim", amount=750)
    resp = client.post("/withdrawals/new", json=withdrawal)
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   {resp.json()['message']} ({withdrawal['id'][:8]}...)")

    # ── Admin: list pending ───────────────────────────────────────
    print("\n2. Pending withdrawals:")
    for w in client.get("/withdrawals").json()[:5]:
        print(f"   {w['id'][:8]}  {w['username']:12s}  {w['amount']:>8}  {w['payment_method']}")

    # ── Admin: decide ─────────────────────────────────────────────
    print("\n3. Admin completes it...")
    resp = client.post("/withdrawals/verify", json={"id": withdrawal["id"], "status": "completed"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   {resp.json()['message']}")

    # ── Audit trail ───────────────────────────────────────────────
    print("\n4. Audit trail:")
    for event in client.get(f"/withdrawals/{withdrawal['id']}/events").json():
        print(f"   #{event['id']:<5} {event['type']:28s} {event['data']}")

    stats = client.get("/dashboard/stats").json()["app"]
    print(
        f"\nTotals: {stats['totalWithdrawals']} total, "
        f"{stats['pendingWithdrawals']} pending, "
        f"{stats['successfulWithdrawals']} successful"
    )


if __name__ == "__main__":
    main()
