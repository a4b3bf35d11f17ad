"""
Stage history repository (persistence).

Append-only storage for StageChange records. It does not decide when a change
is recorded; the services do. Records are only removed together with their
lead.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, DefaultDict, List, Mapping, Optional, Protocol
from uuid import UUID

from domain.lead import LeadStatus
from domain.stage_history import StageChange
from repositories.rows import parse_utc_datetime, response_rows, to_iso_utc

_HISTORY_TABLE: str = "lead_stage_history"


class StageHistoryRepository(Protocol):
    def append(self, change: StageChange) -> None: ...

    def list_for_lead(self, lead_id: UUID) -> List[StageChange]: ...

    def delete_for_lead(self, lead_id: UUID) -> int: ...


class InMemoryStageHistoryRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._changes: DefaultDict[UUID, List[StageChange]] = defaultdict(list)

    def append(self, change: StageChange) -> None:
        with self._lock:
            self._changes[change.lead_id].append(change)

    def list_for_lead(self, lead_id: UUID) -> List[StageChange]:
        with self._lock:
            return sorted(self._changes.get(lead_id, []), key=lambda c: c.created_at)

    def delete_for_lead(self, lead_id: UUID) -> int:
        with self._lock:
            return len(self._changes.pop(lead_id, []))


def _change_to_row(change: StageChange) -> dict[str, Any]:
    return {
        "change_id": str(change.change_id),
        "lead_id": str(change.lead_id),
        "previous_status": change.previous_status.value if change.previous_status else None,
        "new_status": change.new_status.value,
        "by_user_id": change.by_user_id,
        "notes": change.notes,
        "created_at_utc": to_iso_utc(change.created_at, name="created_at"),
    }


def _row_to_change(row: Mapping[str, Any]) -> StageChange:
    previous: Optional[str] = row.get("previous_status")
    return StageChange(
        change_id=UUID(str(row["change_id"])),
        lead_id=UUID(str(row["lead_id"])),
        previous_status=LeadStatus(previous) if previous else None,
        new_status=LeadStatus(str(row["new_status"])),
        by_user_id=str(row["by_user_id"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        notes=row.get("notes"),
    )


class SupabaseStageHistoryRepository:
    def __init__(self, client: Any) -> None:
        self._client = client

    def append(self, change: StageChange) -> None:
        response = self._client.table(_HISTORY_TABLE).insert(_change_to_row(change)).execute()
        response_rows(response, "record stage change")

    def list_for_lead(self, lead_id: UUID) -> List[StageChange]:
        response = (
            self._client.table(_HISTORY_TABLE)
            .select("*")
            .eq("lead_id", str(lead_id))
            .order("created_at_utc")
            .execute()
        )
        return [_row_to_change(row) for row in response_rows(response, "list stage history")]

    def delete_for_lead(self, lead_id: UUID) -> int:
        response = (
            self._client.table(_HISTORY_TABLE)
            .delete()
            .eq("lead_id", str(lead_id))
            .execute()
        )
        return len(response_rows(response, "delete stage history"))


__all__ = [
    "InMemoryStageHistoryRepository",
    "StageHistoryRepository",
    "SupabaseStageHistoryRepository",
]
