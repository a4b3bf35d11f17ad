"""
Domain: acting identity.

An Identity is the resolved principal for a single request. It is never
persisted by the core; the user record it is built from lives in the user
repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    CONSULTANT = "consultant"
    VENDOR = "vendor"
    PATIENT = "patient"
    ANONYMOUS = "anonymous"

    @staticmethod
    def parse(value: str) -> "Role":
        """
        Parse a stored role name.

        "client" is the legacy name of the patient role and maps to PATIENT.
        """

        text = (value or "").strip().lower()
        if text == "client":
            return Role.PATIENT
        return Role(text)


STAFF_ROLES = frozenset({Role.ADMIN, Role.DOCTOR, Role.CONSULTANT, Role.VENDOR})

# Roles that may own (be assigned to) a lead.
ASSIGNABLE_ROLES = frozenset({Role.ADMIN, Role.CONSULTANT, Role.VENDOR})


@dataclass(frozen=True, slots=True)
class Identity:
    user_id: Optional[str]
    role: Role
    is_external_vendor: bool = False
    affiliate_code: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role is not Role.ANONYMOUS and not self.user_id:
            raise ValueError("authenticated identities require a user_id")

    @staticmethod
    def anonymous() -> "Identity":
        return ANONYMOUS

    @property
    def is_anonymous(self) -> bool:
        return self.role is Role.ANONYMOUS

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


ANONYMOUS = Identity(user_id=None, role=Role.ANONYMOUS)


__all__ = ["ANONYMOUS", "ASSIGNABLE_ROLES", "Identity", "Role", "STAFF_ROLES"]
