"""
Notification dispatch for the document approval workflow.

Delivery (email, WhatsApp) belongs to the dispatcher implementation. From the
workflow's side dispatch is fire-and-forget: it happens after the lead change
is committed, and a failing dispatcher is logged and ignored so it can never
undo or fail that change.
"""

from __future__ import annotations

import logging
from typing import List, Protocol

from domain.notification import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def dispatch(self, event: NotificationEvent) -> None: ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records each event in the application log."""

    def dispatch(self, event: NotificationEvent) -> None:
        logger.info(
            f"Notification '{event.template_kind.value}' for {event.track_kind.value} "
            f"queued for subject {event.subject_id}",
            extra={
                "subject_id": event.subject_id,
                "template_kind": event.template_kind.value,
                "track_kind": event.track_kind.value,
                "lead_id": str(event.lead_id),
                "reason": event.reason,
            },
        )


class FanOutNotificationDispatcher:
    """Hands every event to each dispatcher in turn; one failure does not stop the rest."""

    def __init__(self, dispatchers: List[NotificationDispatcher]) -> None:
        self._dispatchers = list(dispatchers)

    def dispatch(self, event: NotificationEvent) -> None:
        for dispatcher in self._dispatchers:
            dispatch_safely(dispatcher, event)


def dispatch_safely(dispatcher: NotificationDispatcher, event: NotificationEvent) -> bool:
    """
    Dispatch `event`, swallowing and logging any failure.

    Returns True if the dispatcher accepted the event.
    """

    try:
        dispatcher.dispatch(event)
    except Exception:
        logger.exception(
            "Notification dispatch failed",
            extra={
                "subject_id": event.subject_id,
                "template_kind": event.template_kind.value,
                "track_kind": event.track_kind.value,
                "lead_id": str(event.lead_id),
            },
        )
        return False
    return True


__all__ = [
    "FanOutNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "dispatch_safely",
]
