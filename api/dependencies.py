"""
FastAPI dependencies.

`get_identity` wraps the identity resolver: the session token comes from the
session cookie or an `Authorization: Bearer` header (cookie first), the
fallback subject from the configured user id header.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, Request

from config.settings import Settings, get_settings
from domain.identity import Identity
from services.container import CoreServices, build_core
from services.identity_service import RequestContext


@lru_cache(maxsize=1)
def _default_core() -> CoreServices:
    return build_core(get_settings())


def get_core() -> CoreServices:
    return _default_core()


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def request_context(request: Request, settings: Settings) -> RequestContext:
    token = request.cookies.get(settings.session_cookie_name) or _bearer_token(
        request.headers.get("Authorization")
    )
    return RequestContext(
        session_token=token,
        subject_id=request.headers.get(settings.user_id_header),
    )


def get_identity(
    request: Request,
    core: CoreServices = Depends(get_core),
    settings: Settings = Depends(get_settings),
) -> Identity:
    return core.identity_resolver.resolve(request_context(request, settings))


def get_cart_session(x_cart_session: Optional[str] = Header(None, alias="X-Cart-Session")) -> Optional[str]:
    """Anonymous cart key, sent by the browser for guests."""

    return x_cart_session
