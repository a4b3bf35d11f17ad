"""
Domain: failure taxonomy.

Every expected business outcome that is not a success maps to exactly one
FailureKind. Services report failures as values; the exceptions below are only
raised inside the core (entity validation, persistence races) and are converted
to `Failure` at the service boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class Failure:
    """A typed, user-presentable failure. `field` is set for validation errors."""

    kind: FailureKind
    message: str
    field: Optional[str] = None

    @staticmethod
    def forbidden(message: str = "Access denied") -> "Failure":
        return Failure(FailureKind.FORBIDDEN, message)

    @staticmethod
    def not_found(message: str = "Not found") -> "Failure":
        return Failure(FailureKind.NOT_FOUND, message)


class CoreError(Exception):
    """Base class for exceptions raised inside the core."""

    kind: FailureKind = FailureKind.VALIDATION_ERROR

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)

    @property
    def failure(self) -> Failure:
        return Failure(self.kind, self.message, self.field)


class InvalidInputError(CoreError, ValueError):
    """Malformed input: a missing required value or a forbidden field change."""

    kind = FailureKind.VALIDATION_ERROR


class InvalidTransitionError(CoreError):
    """The requested stage or approval change violates the lifecycle rules."""

    kind = FailureKind.INVALID_TRANSITION


class NotFoundError(CoreError):
    kind = FailureKind.NOT_FOUND


class AccessDeniedError(CoreError):
    """The actor may see the lead but not perform this particular change."""

    kind = FailureKind.FORBIDDEN


class ConcurrentUpdateError(CoreError):
    """Raised by a repository when an optimistic version check loses a race."""

    kind = FailureKind.CONFLICT


__all__ = [
    "AccessDeniedError",
    "ConcurrentUpdateError",
    "CoreError",
    "Failure",
    "FailureKind",
    "InvalidInputError",
    "InvalidTransitionError",
    "NotFoundError",
]
