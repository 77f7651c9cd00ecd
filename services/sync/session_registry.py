"""In-memory registry of playback sessions."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import uuid4

from models.session_models import Session, SessionData, now_ms
from services.sync.connection_registry import ConnectionRegistry
from services.sync.errors import SessionNotFoundError


class SessionRegistry:
	"""Own every session for the lifetime of the process.

	Sessions are never evicted; the registry grows with each started session.
	"""

	def __init__(self, clock: Callable[[], float] = now_ms) -> None:
		self._sessions: Dict[str, Session] = {}
		self._clock = clock

	def create_session(self, initial_data: Optional[Mapping[str, Any]] = None) -> str:
		"""Store a new session seeded with `initial_data` and return its id."""
		session_id = str(uuid4())
		created = self._clock()
		self._sessions[session_id] = Session(
			id=session_id,
			data=SessionData.from_dict(initial_data),
			connections=ConnectionRegistry(clock=self._clock),
			created_at=created,
			updated_at=created,
		)
		logging.info("Created sync session %s", session_id)
		return session_id

	def get_session(self, session_id: str) -> Optional[Session]:
		return self._sessions.get(session_id)

	def session_exists(self, session_id: str) -> bool:
		return session_id in self._sessions

	def require(self, session_id: str) -> Session:
		"""Return a session or raise SessionNotFoundError if missing."""
		session = self._sessions.get(session_id)
		if session is None:
			raise SessionNotFoundError()
		return session

	def connection_count(self) -> int:
		return sum(len(session.connections) for session in self._sessions.values())

	def __len__(self) -> int:
		return len(self._sessions)
