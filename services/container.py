"""
Composition root.

Wires repositories, services and the notification dispatcher for the
configured storage backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from config.settings import Settings
from repositories.cart_repository import InMemoryCartRepository, SupabaseCartRepository
from repositories.lead_repository import InMemoryLeadRepository, SupabaseLeadRepository
from repositories.stage_history_repository import (
    InMemoryStageHistoryRepository,
    SupabaseStageHistoryRepository,
)
from repositories.user_repository import InMemoryUserRepository, SupabaseUserRepository, UserRepository
from services.approval_service import ApprovalWorkflow
from services.cart_service import CartService
from services.identity_service import IdentityResolver, SessionTokens
from services.lead_service import LeadMutator, LeadService
from services.locks import KeyedLocks
from services.notification_service import LoggingNotificationDispatcher, NotificationDispatcher


@dataclass(frozen=True, slots=True)
class CoreServices:
    users: UserRepository
    session_tokens: SessionTokens
    identity_resolver: IdentityResolver
    leads: LeadService
    approvals: ApprovalWorkflow
    carts: CartService


def build_core(
    settings: Settings,
    *,
    users: Optional[UserRepository] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> CoreServices:
    """
    Build the core for `settings.storage_backend`.

    `users` and `dispatcher` override the defaults (tests inject fakes here).
    """

    if settings.storage_backend == "supabase":
        from repositories.client import create_supabase_client

        client = create_supabase_client(settings)
        lead_repo = SupabaseLeadRepository(client)
        history_repo = SupabaseStageHistoryRepository(client)
        cart_repo = SupabaseCartRepository(client)
        user_repo = users or SupabaseUserRepository(client)
    else:
        lead_repo = InMemoryLeadRepository()
        history_repo = InMemoryStageHistoryRepository()
        cart_repo = InMemoryCartRepository()
        user_repo = users or InMemoryUserRepository()

    tokens = SessionTokens(settings.session_secret, ttl=timedelta(hours=settings.session_ttl_hours))
    mutator = LeadMutator(lead_repo, history_repo, locks=KeyedLocks())

    return CoreServices(
        users=user_repo,
        session_tokens=tokens,
        identity_resolver=IdentityResolver(user_repo, tokens),
        leads=LeadService(lead_repo, user_repo, history_repo, mutator=mutator),
        approvals=ApprovalWorkflow(mutator, dispatcher or LoggingNotificationDispatcher()),
        carts=CartService(cart_repo, locks=KeyedLocks()),
    )


__all__ = ["CoreServices", "build_core"]
