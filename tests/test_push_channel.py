"""Tests for SSE framing and the per-connection stream."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest

from controllers.stream_controller import open_sync_stream
from services.sync.broadcaster import SyncBroadcaster
from services.sync.push_channel import HEARTBEAT_FRAME, PushChannel, format_event
from services.sync.session_registry import SessionRegistry
from services.sync.token_codec import TokenCodec
from utils.settings import SyncSettings


def _parse(frame: str):
    event_line, data_line, blank = frame.split("\n", 2)
    assert event_line.startswith("event: ")
    assert data_line.startswith("data: ")
    assert blank == "\n"
    return event_line[len("event: "):], json.loads(data_line[len("data: "):])


def test_format_event_framing():
    assert format_event("client_join", {}) == "event: client_join\ndata: {}\n\n"
    assert _parse(format_event("message", {"current": 1})) == ("message", {"current": 1})


@pytest.mark.asyncio
async def test_stream_yields_pushed_frames_in_order():
    channel = PushChannel()
    channel.push("message", {"current": 1})
    channel.push("client_join", {})
    stream = channel.stream()

    assert _parse(await stream.__anext__()) == ("message", {"current": 1})
    assert _parse(await stream.__anext__()) == ("client_join", {})
    await stream.aclose()
    assert channel.closed is True


@pytest.mark.asyncio
async def test_stream_emits_heartbeat_when_idle():
    channel = PushChannel(heartbeat_seconds=0.01)
    stream = channel.stream()
    assert await asyncio.wait_for(stream.__anext__(), timeout=1) == HEARTBEAT_FRAME
    await stream.aclose()


def test_push_drops_when_full_or_closed():
    channel = PushChannel(maxsize=1)
    assert channel.push("message", {}) is True
    assert channel.push("message", {}) is False
    channel.close()
    assert channel.push("message", {}) is False


def _fake_request(settings: SyncSettings):
    state = SimpleNamespace(
        settings=settings,
        session_registry=SessionRegistry(),
        token_codec=TokenCodec(settings),
        broadcaster=SyncBroadcaster(),
    )
    return SimpleNamespace(app=SimpleNamespace(state=state))


@pytest.mark.asyncio
async def test_sync_stream_sends_snapshot_then_updates_and_detaches():
    settings = SyncSettings(sign_key="test-secret")
    request = _fake_request(settings)
    state = request.app.state
    session_id = state.session_registry.create_session({"current": 0, "length": 100})
    token = state.token_codec.issue(session_id)

    response = await open_sync_stream(request, token)
    session = state.session_registry.get_session(session_id)
    assert response.media_type == "text/event-stream"
    assert response.headers["cache-control"] == "no-cache"
    assert session.clients == []

    body = response.body_iterator
    first = _parse(await body.__anext__())
    assert len(session.clients) == 1
    connection_id = session.clients[0].id
    assert first == ("message", {"current": 0, "length": 100, "clientId": connection_id})

    state.broadcaster.apply_update(session, {"current": 10, "length": 100})
    assert _parse(await body.__anext__()) == ("message", {"current": 10, "length": 100, "clientId": connection_id})

    await body.aclose()
    assert session.clients == []


@pytest.mark.asyncio
async def test_unstarted_sync_stream_attaches_nothing():
    request = _fake_request(SyncSettings(sign_key="test-secret"))
    state = request.app.state
    session_id = state.session_registry.create_session({"current": 0, "length": 100})

    response = await open_sync_stream(request, state.token_codec.issue(session_id))
    await response.body_iterator.aclose()

    assert state.session_registry.get_session(session_id).clients == []


@pytest.mark.asyncio
async def test_close_wakes_waiting_stream():
    channel = PushChannel(heartbeat_seconds=60)
    stream = channel.stream()
    waiter = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)
    assert not waiter.done()

    channel.close()

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(waiter, timeout=1)
    assert channel.closed is True
