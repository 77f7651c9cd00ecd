"""Per-connection server-sent-events channel."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Protocol

MESSAGE_EVENT = "message"
CLIENT_JOIN_EVENT = "client_join"
HEARTBEAT_FRAME = ": keep-alive\n\n"

SSE_HEADERS = {
	"Cache-Control": "no-cache",
	"Connection": "keep-alive",
	"X-Accel-Buffering": "no",
}


class PushHandle(Protocol):
	"""Capability to push one server-originated message to exactly one client."""

	closed: bool

	def push(self, event: str, data: Dict[str, Any]) -> bool:
		...


def format_event(event: str, data: Dict[str, Any]) -> str:
	"""Frame a message as `event: <name>` / `data: <json>` followed by a blank line."""
	return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


class PushChannel:
	"""Queue framed events for one client without ever blocking the caller.

	`push` is safe to call from request handlers: a full queue drops the frame
	instead of waiting, so one stalled client never holds up the fan-out.
	"""

	def __init__(self, maxsize: int = 100, heartbeat_seconds: float = 15.0) -> None:
		self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
		self.heartbeat_seconds = heartbeat_seconds
		self.closed = False

	def push(self, event: str, data: Dict[str, Any]) -> bool:
		"""Enqueue one event; returns False when the channel is closed or full."""
		if self.closed:
			return False
		try:
			self._queue.put_nowait(format_event(event, data))
		except asyncio.QueueFull:
			logging.warning("Push queue full; dropping %s event", event)
			return False
		return True

	def close(self) -> None:
		"""Mark the channel closed and wake a stream waiting for the next frame."""
		if self.closed:
			return
		self.closed = True
		try:
			self._queue.put_nowait(None)
		except asyncio.QueueFull:
			# A full queue already wakes the reader, which then sees `closed`.
			pass

	async def stream(self) -> AsyncIterator[str]:
		"""Yield queued frames until closed, emitting a heartbeat comment when idle."""
		try:
			while not self.closed:
				try:
					frame = await asyncio.wait_for(self._queue.get(), timeout=self.heartbeat_seconds)
				except asyncio.TimeoutError:
					yield HEARTBEAT_FRAME
					continue
				if frame is None:
					break
				yield frame
		finally:
			self.closed = True
