"""CLI tests — click commands against a mocked relay API."""

import json

import httpx
import pytest
from click.testing import CliRunner

from withdrawal_relay.cli import main as cli

PENDING = [
    {
        "id": "3b1f9c2e-0000-4000-8000-000000000001",
        "txn_id": "txn-1",
        "uid": "user-42",
        "amount": 500.0,
        "payment_method": "bkash",
        "payment_number": "01700000000",
        "username": "rahim",
        "status": "pending",
        "created_at": "2026-10-17T08:00:00",
        "updated_at": None,
    }
]


@pytest.fixture()
def api(monkeypatch):
    """Route the CLI's HTTP client to an in-memory handler."""
    state = {"requests": [], "verify_status": 200}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        path = request.url.path
        if path == "/api/v1/withdrawals":
            return httpx.Response(200, json=PENDING)
        if path == "/api/v1/withdrawals/verify":
            if state["verify_status"] != 200:
                return httpx.Response(state["verify_status"], json={"detail": "Withdrawal w1 is already completed"})
            body = json.loads(request.content)
            return httpx.Response(200, json={"message": f"Withdrawal {body['status']}"})
        if path == "/api/v1/dashboard/stats":
            return httpx.Response(200, json={
                "system": {"cpu": 12.5, "memory": 40.1, "uptime": 3600.0, "platform": "linux"},
                "app": {
                    "totalWithdrawals": 7,
                    "pendingWithdrawals": 2,
                    "successfulWithdrawals": 4,
                    "startTime": 0,
                },
                "clients": {"mobile": 3, "dashboard": 1},
                "timestamp": "2026-10-17T08:00:00+00:00",
            })
        if path == "/api/v1/clients":
            return httpx.Response(200, json=[])
        if path == "/api/v1/admin/register-token":
            return httpx.Response(200, json={"message": "Token registered successfully"})
        return httpx.Response(404, json={"detail": "Not Found"})

    monkeypatch.setattr(
        cli,
        "_client",
        lambda: httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://relay.test"
        ),
    )
    return state


def test_pending_table(api):
    result = CliRunner().invoke(cli.main, ["pending"])
    assert result.exit_code == 0
    assert "Pending withdrawals (1)" in result.output
    assert "rahim" in result.output
    assert "bkash" in result.output


def test_pending_json(api):
    result = CliRunner().invoke(cli.main, ["pending", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output)[0]["username"] == "rahim"


def test_verify(api):
    result = CliRunner().invoke(cli.main, ["verify", "w1", "--status", "completed"])
    assert result.exit_code == 0
    assert "w1" in result.output
    assert json.loads(api["requests"][0].content) == {"id": "w1", "status": "completed"}


def test_verify_rejects_bad_status(api):
    result = CliRunner().invoke(cli.main, ["verify", "w1", "--status", "pending"])
    assert result.exit_code != 0
    assert api["requests"] == []


def test_verify_conflict_exits_nonzero(api):
    api["verify_status"] = 409
    result = CliRunner().invoke(cli.main, ["verify", "w1", "-s", "rejected"])
    assert result.exit_code == 1
    assert "Error 409" in result.output
    assert "already completed" in result.output


def test_stats(api):
    result = CliRunner().invoke(cli.main, ["stats"])
    assert result.exit_code == 0
    assert "Total:      7" in result.output
    assert "Mobile:    3" in result.output


def test_clients_empty(api):
    result = CliRunner().invoke(cli.main, ["clients", "--kind", "mobile"])
    assert result.exit_code == 0
    assert "No clients connected." in result.output
    assert api["requests"][0].url.params["kind"] == "mobile"


def test_register_token(api):
    result = CliRunner().invoke(cli.main, ["register-token", "ExponentPushToken[abc]"])
    assert result.exit_code == 0
    assert "Token registered successfully" in result.output
