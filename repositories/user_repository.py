"""
User repository.

Looks up the account records that identities are built from. The core only
reads users; registration and role changes happen elsewhere.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Mapping, Optional, Protocol

from domain.identity import Identity, Role

_USERS_TABLE: str = "users"


class UserRepository(Protocol):
    def get_identity(self, user_id: str) -> Optional[Identity]: ...


def _row_to_identity(row: Mapping[str, Any]) -> Identity:
    role = Role.parse(str(row["role"]))
    if role is Role.ANONYMOUS:
        raise ValueError(f"user {row['id']} has no usable role")
    return Identity(
        user_id=str(row["id"]),
        role=role,
        is_external_vendor=bool(row.get("is_external_vendor") or False),
        affiliate_code=row.get("affiliate_code"),
    )


class InMemoryUserRepository:
    def __init__(self, identities: Optional[list[Identity]] = None) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, Identity] = {}
        for identity in identities or []:
            self.add(identity)

    def add(self, identity: Identity) -> Identity:
        if identity.is_anonymous:
            raise ValueError("the anonymous identity cannot be stored")
        with self._lock:
            self._users[identity.user_id] = identity
        return identity

    def get_identity(self, user_id: str) -> Optional[Identity]:
        with self._lock:
            return self._users.get(user_id)


class SupabaseUserRepository:
    def __init__(self, client: Any) -> None:
        self._client = client

    def get_identity(self, user_id: str) -> Optional[Identity]:
        """
        Get the identity for a user id.

        Returns None if no user exists, or if the stored role is unknown or
        anonymous.
        """

        response = (
            self._client.table(_USERS_TABLE)
            .select("id, role, is_external_vendor, affiliate_code")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch user: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None

        try:
            return _row_to_identity(rows[0])
        except ValueError:
            return None


__all__ = ["InMemoryUserRepository", "SupabaseUserRepository", "UserRepository"]
