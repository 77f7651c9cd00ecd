"""Session domain models for synchronized playback."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

if TYPE_CHECKING:
	from services.sync.connection_registry import Connection, ConnectionRegistry

FORCE_TIME_KEY = "forceTime"
CLIENT_ID_KEY = "clientId"

# Marks a named field that was never set, so an explicit None survives the merge.
UNSET: Any = object()


def now_ms() -> float:
	"""Current wall clock time in epoch milliseconds."""
	return time.time() * 1000


def as_number(value: Any) -> Optional[float]:
	"""Return `value` if it is a real number (bools excluded), else None."""
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return None
	return value


@dataclass
class SessionData:
	"""Shared playback state with named conventional fields and pass-through extras."""

	current: Any = UNSET
	length: Any = UNSET
	force_time: Optional[float] = None
	extra: Dict[str, Any] = field(default_factory=dict)

	@classmethod
	def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "SessionData":
		"""Build session data from a free-form mapping; unknown keys land in `extra`."""
		data = cls()
		if raw:
			data.merge(raw)
		return data

	def merge(self, patch: Mapping[str, Any]) -> None:
		"""Shallow-merge `patch` into this state.

		Fields present in the patch overwrite existing ones, absent fields are kept.
		A `forceTime` key in the patch is ignored: only the broadcaster stamps the lock.
		"""
		for key, value in patch.items():
			if key == "current":
				self.current = value
			elif key == "length":
				self.length = value
			elif key == FORCE_TIME_KEY:
				continue
			else:
				self.extra[key] = value

	def to_dict(self, include_lock: bool = False) -> Dict[str, Any]:
		"""Return the wire view; the force-lock stamp is stripped unless requested."""
		payload: Dict[str, Any] = dict(self.extra)
		if self.current is not UNSET:
			payload["current"] = self.current
		if self.length is not UNSET:
			payload["length"] = self.length
		if include_lock and self.force_time is not None:
			payload[FORCE_TIME_KEY] = self.force_time
		return payload


@dataclass
class Session:
	"""In-memory synchronization context shared by every attached client."""

	id: str
	data: SessionData
	connections: "ConnectionRegistry"
	created_at: float = field(default_factory=now_ms)
	updated_at: float = 0.0

	def __post_init__(self) -> None:
		# updated_at mirrors created_at and is not refreshed on merge.
		if not self.updated_at:
			self.updated_at = self.created_at

	@property
	def clients(self) -> List["Connection"]:
		return self.connections.list()
