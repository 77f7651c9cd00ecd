"""Controllers for starting, syncing and updating playback sessions."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse

from models.session_models import CLIENT_ID_KEY, Session
from services.sync.broadcaster import SyncBroadcaster, parse_connection_id
from services.sync.errors import SyncError
from services.sync.peer_join import PeerJoinCoordinator
from services.sync.push_channel import MESSAGE_EVENT, SSE_HEADERS, PushChannel
from services.sync.session_registry import SessionRegistry
from services.sync.token_codec import TokenCodec
from utils.settings import SyncSettings


def _http_error(exc: SyncError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.detail)


def _verified_session(request: Request, token: Optional[str]) -> Session:
	"""Verify the token and return its session; all state changes happen after this."""
	codec: TokenCodec = request.app.state.token_codec
	registry: SessionRegistry = request.app.state.session_registry
	try:
		return registry.require(codec.verify(token))
	except SyncError as exc:
		raise _http_error(exc) from exc


async def start_session(request: Request, initial_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
	"""Create a session seeded with `initial_data` and return a token bound to it."""
	codec: TokenCodec = request.app.state.token_codec
	registry: SessionRegistry = request.app.state.session_registry
	try:
		codec.ensure_available()
		session_id = registry.create_session(initial_data or {})
		token = codec.issue(session_id)
	except SyncError as exc:
		raise _http_error(exc) from exc
	return {"token": token}


async def _event_stream(session: Session, channel: PushChannel) -> AsyncIterator[str]:
	"""Attach `channel` once the body starts streaming and detach it when the stream ends."""
	connection = session.connections.attach(session.connections.next_id(), channel)
	channel.push(MESSAGE_EVENT, {**session.data.to_dict(), CLIENT_ID_KEY: connection.id})
	logging.info("Connection %s attached to session %s", connection.id, session.id)
	try:
		async for frame in channel.stream():
			yield frame
	finally:
		channel.close()
		session.connections.detach(connection.id)
		logging.info("Connection %s closed in session %s", connection.id, session.id)


async def open_sync_stream(request: Request, token: Optional[str]) -> StreamingResponse:
	"""Verify the token and return a stream that attaches a push connection when it starts."""
	session = _verified_session(request, token)
	settings: SyncSettings = request.app.state.settings
	channel = PushChannel(maxsize=settings.push_queue_size, heartbeat_seconds=settings.heartbeat_seconds)
	return StreamingResponse(
		_event_stream(session, channel),
		media_type="text/event-stream",
		headers=SSE_HEADERS,
	)


async def update_session(
	request: Request,
	token: Optional[str],
	data: Optional[Dict[str, Any]],
	force: bool,
) -> Dict[str, Any]:
	"""Apply a playback update and return the merged session data."""
	session = _verified_session(request, token)
	broadcaster: SyncBroadcaster = request.app.state.broadcaster
	try:
		return broadcaster.apply_update(session, data or {}, force=force)
	except SyncError as exc:
		raise _http_error(exc) from exc


async def request_join(request: Request, token: Optional[str], client_id: Optional[str]) -> Dict[str, Any]:
	"""Ask a random peer of `client_id` to re-announce its live position."""
	session = _verified_session(request, token)
	coordinator: PeerJoinCoordinator = request.app.state.peer_join
	try:
		requester_id = parse_connection_id(client_id)
	except SyncError as exc:
		raise _http_error(exc) from exc
	coordinator.request_join(session, requester_id)
	return {}


async def get_status(request: Request) -> Dict[str, Any]:
	registry: SessionRegistry = request.app.state.session_registry
	return {"ok": True, "sessions": len(registry), "clients": registry.connection_count()}
