"""Expo push gateway tests — token checks, chunking, failure handling."""

import httpx
import pytest

from conftest import PUSH_URL, PushRecorder
from withdrawal_relay.push.expo import ExpoPushGateway, PushMessage, is_expo_push_token


def _messages(n: int) -> list[PushMessage]:
    return [
        PushMessage(to=f"ExponentPushToken[device-{i}]", title="t", body="b")
        for i in range(n)
    ]


@pytest.mark.parametrize("token", [
    "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]",
    "ExpoPushToken[abc]",
    "F5741A13-BCDA-434B-A316-5DC0E6FFA94F",
])
def test_valid_tokens(token):
    assert is_expo_push_token(token)


@pytest.mark.parametrize("token", [
    "",
    "ExponentPushToken[]",
    "fcm:abcdef",
    "ExponentPushToken[abc",
    None,
    12345,
])
def test_invalid_tokens(token):
    assert not is_expo_push_token(token)


def test_payload_omits_empty_sound():
    msg = PushMessage(to="ExpoPushToken[a]", title="t", body="b", data={"id": 1}, sound=None)
    assert msg.as_payload() == {"to": "ExpoPushToken[a]", "title": "t", "body": "b", "data": {"id": 1}}


def test_chunking():
    gw = ExpoPushGateway(PUSH_URL, chunk_size=2)
    chunks = gw.chunk_messages(_messages(5))
    assert [len(c) for c in chunks] == [2, 2, 1]
    assert gw.chunk_messages([]) == []


@pytest.mark.asyncio
async def test_send_posts_one_request_per_chunk():
    recorder = PushRecorder()
    report = await recorder.gateway(chunk_size=2).send(_messages(5))

    assert len(recorder.requests) == 3
    assert report.sent == 5
    assert report.failed_chunks == 0
    assert str(recorder.requests[0].url) == PUSH_URL


@pytest.mark.asyncio
async def test_send_nothing_makes_no_request():
    recorder = PushRecorder()
    report = await recorder.gateway().send([])
    assert recorder.requests == []
    assert report.sent == 0


@pytest.mark.asyncio
async def test_access_token_sent_as_bearer():
    recorder = PushRecorder()
    await recorder.gateway(access_token="s3cret").send(_messages(1))
    assert recorder.requests[0].headers["Authorization"] == "Bearer s3cret"


@pytest.mark.asyncio
async def test_no_authorization_header_by_default():
    recorder = PushRecorder()
    await recorder.gateway().send(_messages(1))
    assert "Authorization" not in recorder.requests[0].headers


@pytest.mark.asyncio
async def test_failed_chunk_does_not_stop_the_rest():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(500)
        return httpx.Response(200, json={"data": [{"status": "ok"}]})

    gw = ExpoPushGateway(PUSH_URL, chunk_size=1, transport=httpx.MockTransport(handler))
    report = await gw.send(_messages(2))

    assert len(calls) == 2
    assert report.failed_chunks == 1
    assert report.sent == 1


@pytest.mark.asyncio
async def test_network_error_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    gw = ExpoPushGateway(PUSH_URL, transport=httpx.MockTransport(handler))
    report = await gw.send(_messages(3))
    assert report.failed_chunks == 1
    assert report.sent == 0


@pytest.mark.asyncio
async def test_ticket_errors_collect_unregistered_devices():
    recorder = PushRecorder()
    recorder.unregistered.add("ExponentPushToken[device-1]")

    report = await recorder.gateway().send(_messages(3))

    assert report.sent == 3
    assert report.ticket_errors == 1
    assert report.unregistered == ["ExponentPushToken[device-1]"]
    assert report.as_dict()["unregistered"] == 1
