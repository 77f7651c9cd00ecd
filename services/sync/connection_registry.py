"""Live push connections attached to one session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from models.session_models import now_ms
from services.sync.push_channel import PushHandle


@dataclass
class Connection:
	"""One client's push channel and the position it last reported."""

	id: int
	push_handle: PushHandle
	last_known_position: float = 0

	@property
	def is_closed(self) -> bool:
		return bool(getattr(self.push_handle, "closed", False))


class ConnectionRegistry:
	"""Track the push connections of a session in attach order."""

	def __init__(self, clock: Callable[[], float] = now_ms) -> None:
		self._connections: Dict[int, Connection] = {}
		self._clock = clock
		self._last_id = 0

	def next_id(self) -> int:
		"""Return a creation-time based id that is unique within this registry."""
		candidate = int(self._clock())
		if candidate <= self._last_id:
			candidate = self._last_id + 1
		self._last_id = candidate
		return candidate

	def attach(self, connection_id: int, push_handle: PushHandle) -> Connection:
		"""Register a new connection with a last known position of zero."""
		if connection_id in self._connections:
			raise ValueError(f"Connection {connection_id} already attached")
		connection = Connection(id=connection_id, push_handle=push_handle)
		self._connections[connection_id] = connection
		self._last_id = max(self._last_id, connection_id)
		return connection

	def detach(self, connection_id: int) -> bool:
		"""Remove the connection with this id; a missing id is a no-op."""
		return self._connections.pop(connection_id, None) is not None

	def get(self, connection_id: int) -> Optional[Connection]:
		return self._connections.get(connection_id)

	def list(self) -> List[Connection]:
		return list(self._connections.values())

	def prune_closed(self) -> List[Connection]:
		"""Drop connections whose transport is already known to be closed."""
		closed = [c for c in self._connections.values() if c.is_closed]
		for connection in closed:
			del self._connections[connection.id]
			logging.info("Pruned closed connection %s", connection.id)
		return closed

	def __len__(self) -> int:
		return len(self._connections)

	def __contains__(self, connection_id: object) -> bool:
		return connection_id in self._connections
