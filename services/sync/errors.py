"""Failure types raised by the sync services and mapped to HTTP statuses by controllers."""

from __future__ import annotations


class SyncError(Exception):
	"""Base class for sync failures; `status_code` and `detail` are what the client sees."""

	status_code = 500
	detail = "Internal server error"

	def __init__(self, message: str | None = None) -> None:
		super().__init__(message or self.detail)


class BadRequestError(SyncError):
	"""Missing, malformed, expired or otherwise invalid token or parameters."""

	status_code = 400
	detail = "Bad request"


class SessionNotFoundError(SyncError):
	status_code = 404
	detail = "Session not found"


class ForceLockedError(SyncError):
	"""A non-force update arrived while a forced update still holds the lock."""

	status_code = 403
	detail = "Update rejected: playback is locked by a forced update"


class SigningUnavailableError(SyncError):
	"""Signing key missing or signing failed."""

	status_code = 500
	detail = "Internal server error"
