"""Signed bearer tokens binding a client to one sync session."""

from __future__ import annotations

import logging
import time
from typing import Callable

from jose import JWTError, jwt

from services.sync.errors import BadRequestError, SigningUnavailableError
from utils.settings import SyncSettings

SESSION_CLAIM = "sessionId"


class TokenCodec:
	"""Issue and verify JWTs carrying a `sessionId` claim.

	Every verification failure (bad signature, wrong issuer or algorithm,
	expired, not yet valid, missing claim) surfaces as the same BadRequestError.
	A missing signing key fails closed with SigningUnavailableError.
	"""

	def __init__(self, settings: SyncSettings, clock: Callable[[], float] = time.time) -> None:
		self.settings = settings
		self._clock = clock

	@property
	def available(self) -> bool:
		return bool(self.settings.sign_key)

	def ensure_available(self) -> str:
		key = self.settings.sign_key
		if not key:
			logging.error("SIGN_KEY is not configured; token operations are disabled")
			raise SigningUnavailableError()
		return key

	def issue(self, session_id: str) -> str:
		"""Sign a token for `session_id` valid from now until the configured TTL."""
		key = self.ensure_available()
		issued_at = int(self._clock())
		claims = {
			SESSION_CLAIM: session_id,
			"iss": self.settings.token_issuer,
			"iat": issued_at,
			"nbf": issued_at,
			"exp": issued_at + self.settings.token_ttl_seconds,
		}
		try:
			return jwt.encode(claims, key, algorithm=self.settings.token_algorithm)
		except JWTError as exc:
			logging.error("Failed to sign session token: %s", exc)
			raise SigningUnavailableError() from exc

	def verify(self, token: str | None) -> str:
		"""Return the session id embedded in a valid token."""
		key = self.ensure_available()
		if not token:
			raise BadRequestError()
		try:
			claims = jwt.decode(
				token,
				key,
				algorithms=[self.settings.token_algorithm],
				issuer=self.settings.token_issuer,
			)
		except JWTError as exc:
			logging.debug("Token verification failed: %s", exc)
			raise BadRequestError() from exc
		session_id = claims.get(SESSION_CLAIM)
		if not isinstance(session_id, str) or not session_id:
			logging.debug("Token is missing the %s claim", SESSION_CLAIM)
			raise BadRequestError()
		return session_id
