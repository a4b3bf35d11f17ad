"""
Mapping of core failures to HTTP errors.

forbidden -> 403 (401 for anonymous callers), not_found -> 404,
invalid_transition and conflict -> 409, validation_error -> 422.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException

from domain.errors import Failure, FailureKind
from domain.identity import Identity
from domain.lead import Lead
from services.lead_service import LeadResult

_STATUS_CODES = {
    FailureKind.FORBIDDEN: 403,
    FailureKind.NOT_FOUND: 404,
    FailureKind.INVALID_TRANSITION: 409,
    FailureKind.CONFLICT: 409,
    FailureKind.VALIDATION_ERROR: 422,
}


def raise_for_failure(failure: Failure, actor: Identity) -> NoReturn:
    status_code = _STATUS_CODES[failure.kind]
    if failure.kind is FailureKind.FORBIDDEN and actor.is_anonymous:
        status_code = 401
    raise HTTPException(
        status_code=status_code,
        detail={
            "error": failure.kind.value,
            "message": failure.message,
            "field": failure.field,
        },
    )


def unwrap(result: LeadResult, actor: Identity) -> Lead:
    if not result.success:
        raise_for_failure(result.failure, actor)
    return result.lead
