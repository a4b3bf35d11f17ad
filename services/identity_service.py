"""
Identity resolution.

Turns the raw credentials of a request into an Identity. Two paths can carry
the subject:
1. a signed session token (cookie or bearer), issued by `SessionTokens`;
2. an explicit subject id header, used where session cookies are unavailable
   (e.g. sandboxed iframes).

When both are present and name different users, the session token wins. When
neither resolves to a known user, the result is the anonymous identity. Being
logged out is a normal value here, never an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt

from domain.identity import ANONYMOUS, Identity
from domain.time import utc_now
from repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "session"


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Credentials extracted from an inbound request."""

    session_token: Optional[str] = None
    subject_id: Optional[str] = None


class SessionTokens:
    """Issues and verifies HS256-signed session tokens."""

    ALGORITHM = "HS256"

    def __init__(self, secret: str, ttl: timedelta = timedelta(hours=8)) -> None:
        if not secret:
            raise ValueError("a session secret is required")
        self._secret = secret
        self._ttl = ttl

    def issue(self, identity: Identity, now: Optional[datetime] = None) -> str:
        if identity.is_anonymous:
            raise ValueError("cannot issue a session for the anonymous identity")
        issued_at = now or utc_now()
        payload: Dict[str, Any] = {
            "sub": identity.user_id,
            "role": identity.role.value,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
            "type": SESSION_TOKEN_TYPE,
        }
        return jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)

    def subject_of(self, token: str) -> Optional[str]:
        """The user id a valid session token names; None if invalid or expired."""

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.ALGORITHM])
        except jwt.InvalidTokenError:
            return None
        if payload.get("type") != SESSION_TOKEN_TYPE:
            return None
        subject = payload.get("sub")
        return str(subject) if subject else None


class IdentityResolver:
    def __init__(self, users: UserRepository, tokens: SessionTokens) -> None:
        self._users = users
        self._tokens = tokens

    def resolve(self, context: RequestContext) -> Identity:
        token_subject = None
        if context.session_token:
            token_subject = self._tokens.subject_of(context.session_token)

        header_subject = (context.subject_id or "").strip() or None

        if token_subject and header_subject and token_subject != header_subject:
            logger.warning(
                "Session token and subject header disagree; using the session token",
                extra={"token_subject": token_subject, "header_subject": header_subject},
            )

        for subject in (token_subject, header_subject):
            if not subject:
                continue
            identity = self._users.get_identity(subject)
            if identity is not None:
                return identity
        return ANONYMOUS


__all__ = ["IdentityResolver", "RequestContext", "SessionTokens"]
