"""wrelay CLI — run the relay and poke at it from a terminal.

Usage:
    wrelay serve                                 # Run the API + WebSocket server
    wrelay pending                               # Pending withdrawals, newest first
    wrelay verify <id> --status completed        # Complete or reject a withdrawal
    wrelay stats                                 # Counters + host load
    wrelay clients [--kind mobile]               # Connected devices/dashboards
    wrelay register-token ExponentPushToken[..]  # Add an admin device
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("WRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler."""
    try:
        return asyncio.run(coro)
    except httpx.HTTPStatusError as e:
        try:
            detail = e.response.json().get("detail", e.response.text)
        except ValueError:
            detail = e.response.text
        click.secho(f"Error {e.response.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    except httpx.TransportError as e:
        click.secho(f"Cannot reach relay at {_api_url()}: {e}", fg="red", err=True)
        sys.exit(1)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "—")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


_STATUS_COLORS = {
    "pending": "yellow",
    "completed": "green",
    "rejected": "red",
}


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="wrelay")
def main():
    """wrelay — withdrawal relay server and admin tools."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: WRELAY_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: WRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from withdrawal_relay.config import settings

    uvicorn.run(
        "withdrawal_relay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def pending(as_json: bool):
    """List pending withdrawals, newest first."""
    _run(_pending_impl(as_json))


async def _pending_impl(as_json: bool):
    async with _client() as c:
        r = await c.get("/api/v1/withdrawals")
        r.raise_for_status()
        rows = r.json()

    if as_json:
        click.echo(_pretty_json(rows))
        return
    if not rows:
        click.echo("No pending withdrawals.")
        return

    click.secho(f"Pending withdrawals ({len(rows)}):", bold=True)
    click.echo()
    _print_table(rows, [
        ("ID", "id", 36),
        ("User", "username", 16),
        ("Amount", "amount", 10),
        ("Method", "payment_method", 10),
        ("Number", "payment_number", 14),
        ("Created", "created_at", 19),
    ])


@main.command()
@click.argument("withdrawal_id")
@click.option(
    "--status", "-s",
    type=click.Choice(["completed", "rejected"]),
    required=True,
    help="Decision for this withdrawal",
)
def verify(withdrawal_id: str, status: str):
    """Complete or reject a pending withdrawal."""
    _run(_verify_impl(withdrawal_id, status))


async def _verify_impl(withdrawal_id: str, status: str):
    async with _client() as c:
        r = await c.post(
            "/api/v1/withdrawals/verify",
            json={"id": withdrawal_id, "status": status},
        )
        r.raise_for_status()
    click.echo(f"Withdrawal {withdrawal_id}: {click.style(status, fg=_STATUS_COLORS[status])}")


@main.command()
def stats():
    """Show withdrawal counters, host load and connected clients."""
    _run(_stats_impl())


async def _stats_impl():
    async with _client() as c:
        r = await c.get("/api/v1/dashboard/stats")
        r.raise_for_status()
        data = r.json()

    app, system, clients = data["app"], data["system"], data["clients"]
    click.secho("Withdrawals:", bold=True)
    click.echo(f"  Total:      {app['totalWithdrawals']}")
    click.echo(f"  Pending:    {click.style(str(app['pendingWithdrawals']), fg='yellow')}")
    click.echo(f"  Successful: {click.style(str(app['successfulWithdrawals']), fg='green')}")
    click.echo()
    click.secho("System:", bold=True)
    click.echo(f"  CPU:    {system['cpu']}%")
    click.echo(f"  Memory: {system['memory']}%")
    click.echo(f"  Uptime: {system['uptime']:.0f}s ({system['platform']})")
    click.echo()
    click.secho("Clients:", bold=True)
    click.echo(f"  Mobile:    {clients.get('mobile', 0)}")
    click.echo(f"  Dashboard: {clients.get('dashboard', 0)}")


@main.command()
@click.option("--kind", type=click.Choice(["mobile", "dashboard"]), help="Filter by client type")
def clients(kind: Optional[str]):
    """List clients connected over WebSocket."""
    _run(_clients_impl(kind))


async def _clients_impl(kind: Optional[str]):
    params = {"kind": kind} if kind else {}
    async with _client() as c:
        r = await c.get("/api/v1/clients", params=params)
        r.raise_for_status()
        rows = r.json()

    if not rows:
        click.echo("No clients connected.")
        return
    _print_table(rows, [
        ("Client", "client_id", 32),
        ("Kind", "kind", 9),
        ("Device", "device_id", 20),
        ("Name", "device_name", 24),
        ("Last seen", "last_seen", 19),
    ])


@main.command("register-token")
@click.argument("token")
def register_token(token: str):
    """Register an admin device's Expo push token."""
    _run(_register_token_impl(token))


async def _register_token_impl(token: str):
    async with _client() as c:
        r = await c.post("/api/v1/admin/register-token", json={"token": token})
        r.raise_for_status()
    click.echo(r.json()["message"])


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
