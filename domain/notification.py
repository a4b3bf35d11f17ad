"""
Domain: notification events emitted by the document approval workflow.

Events are channel-agnostic; the dispatcher decides whether a subject is
reached by email, WhatsApp or both.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from .lead import ApprovalTrack


class TemplateKind(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    subject_id: str
    template_kind: TemplateKind
    track_kind: ApprovalTrack
    lead_id: UUID
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if self.template_kind is TemplateKind.REJECTED and not self.reason:
            raise ValueError("rejected notifications must carry a reason")
