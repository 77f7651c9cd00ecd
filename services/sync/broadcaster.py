"""Apply playback updates to a session and fan them out to its connections."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from models.session_models import CLIENT_ID_KEY, FORCE_TIME_KEY, Session, SessionData, as_number, now_ms
from services.sync.connection_registry import Connection
from services.sync.errors import BadRequestError, ForceLockedError
from services.sync.push_channel import MESSAGE_EVENT

FORCE_LOCK_WINDOW_MS = 1500
DRIFT_THRESHOLD_PCT = 5


def parse_connection_id(value: Any) -> int:
	"""Coerce a client-supplied connection id to int or raise BadRequestError."""
	if isinstance(value, bool):
		raise BadRequestError()
	if isinstance(value, int):
		return value
	if isinstance(value, float) and value.is_integer():
		return int(value)
	if isinstance(value, str) and value.strip().lstrip("-").isdigit():
		return int(value.strip())
	raise BadRequestError()


class SyncBroadcaster:
	"""Arbitrate the force lock, merge updates and decide who receives them.

	`apply_update` never awaits, so read-merge-fan-out runs as one step on the
	event loop and concurrent update requests cannot interleave inside it.
	"""

	def __init__(
		self,
		lock_window_ms: float = FORCE_LOCK_WINDOW_MS,
		drift_threshold_pct: float = DRIFT_THRESHOLD_PCT,
		clock: Callable[[], float] = now_ms,
	) -> None:
		self.lock_window_ms = lock_window_ms
		self.drift_threshold_pct = drift_threshold_pct
		self._clock = clock

	def apply_update(self, session: Session, patch: Optional[Mapping[str, Any]], force: bool = False) -> Dict[str, Any]:
		"""Merge `patch` into the session, push it where needed and return the merged view.

		Raises ForceLockedError, with nothing merged or pushed, when a non-force
		update lands inside the lock window of the latest forced update.
		"""
		changes = dict(patch or {})
		origin_id: Optional[int] = None
		if CLIENT_ID_KEY in changes:
			origin_id = parse_connection_id(changes.pop(CLIENT_ID_KEY))
		changes.pop(FORCE_TIME_KEY, None)

		self._arbitrate(session, force)
		session.data.merge(changes)

		if origin_id is not None:
			self._record_position(session, origin_id, changes.get("current"))

		delivered = self._fan_out(session, changes, force, origin_id)
		logging.debug(
			"Session %s update (force=%s) pushed to %s of %s connections",
			session.id,
			force,
			len(delivered),
			len(session.connections),
		)
		return session.data.to_dict()

	def _arbitrate(self, session: Session, force: bool) -> None:
		data = session.data
		now = self._clock()
		if force:
			data.force_time = now
			return
		if data.force_time is None:
			return
		if now - data.force_time > self.lock_window_ms:
			data.force_time = None
			return
		logging.warning("Session %s rejected update during force lock", session.id)
		raise ForceLockedError()

	def _record_position(self, session: Session, origin_id: int, position: Any) -> None:
		connection = session.connections.get(origin_id)
		value = as_number(position)
		if connection is None or value is None:
			return
		connection.last_known_position = value

	def _fan_out(
		self,
		session: Session,
		changes: Mapping[str, Any],
		force: bool,
		origin_id: Optional[int] = None,
	) -> List[Connection]:
		session.connections.prune_closed()
		merged = session.data.to_dict()
		delivered: List[Connection] = []
		for connection in session.connections.list():
			# The originator always gets its echo; others only past the drift threshold.
			if not force and connection.id != origin_id and not self._is_drifted(session.data, changes, connection):
				continue
			if connection.push_handle.push(MESSAGE_EVENT, {**merged, CLIENT_ID_KEY: connection.id}):
				delivered.append(connection)
		return delivered

	def _is_drifted(self, data: SessionData, changes: Mapping[str, Any], connection: Connection) -> bool:
		current = as_number(changes.get("current", data.current))
		length = as_number(changes.get("length", data.length))
		if current is None or not length or length <= 0:
			return False
		# Percent-of-duration gap between the new position and the client's.
		gap_pct = (current - connection.last_known_position) * 100 / length
		return gap_pct >= self.drift_threshold_pct
