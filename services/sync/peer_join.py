"""Ask an existing peer to re-announce its position when a client joins."""

from __future__ import annotations

import logging
import random
from typing import Callable, Optional, Sequence

from models.session_models import Session
from services.sync.connection_registry import Connection
from services.sync.push_channel import CLIENT_JOIN_EVENT


class PeerJoinCoordinator:
	"""Pick one random peer of the requester and send it a `client_join` event."""

	def __init__(self, choose: Callable[[Sequence[Connection]], Connection] = random.choice) -> None:
		self._choose = choose

	def request_join(self, session: Session, requester_id: int) -> Optional[Connection]:
		"""Return the notified peer, or None when the requester is alone."""
		session.connections.prune_closed()
		candidates = [c for c in session.connections.list() if c.id != requester_id]
		if not candidates:
			logging.debug("No peers available for join request from %s", requester_id)
			return None
		peer = self._choose(candidates)
		peer.push_handle.push(CLIENT_JOIN_EVENT, {})
		logging.info("Asked peer %s to re-announce for %s in session %s", peer.id, requester_id, session.id)
		return peer
