from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .validation import Action, LogEntry, ValidationResult

"""StagingItem model and StagingStatus enum.

A StagingItem is a non-immediate ValidationResult parked in `toilets_bulk` for a
human reviewer. State transitions: review_needed -> (done | rejected),
rejected -> done (after correction). done is terminal.
"""

__all__ = [
    "StagingStatus",
    "StagingItem",
    "STAGING_COLUMNS",
    "EDITABLE_FIELDS",
]

STAGING_COLUMNS: tuple[str, ...] = (
    "id", "upload_id", "name_raw", "address_raw", "lat_raw", "lng_raw",
    "name", "address", "lat", "lng", "floor", "status", "reason", "logs",
)

EDITABLE_FIELDS = frozenset({"name", "address", "lat", "lng", "floor"})


class StagingStatus(Enum):
    REVIEW_NEEDED = "review_needed"
    REJECTED = "rejected"
    DONE = "done"

    @staticmethod
    def for_action(action: Action) -> StagingStatus:
        if action is Action.REVIEW:
            return StagingStatus.REVIEW_NEEDED
        if action is Action.REJECT:
            return StagingStatus.REJECTED
        raise ValueError(f"immediate results are not staged: {action}")


@dataclass(frozen=True)
class StagingItem:
    id: str
    upload_id: str
    name_raw: str
    address_raw: str
    lat_raw: float
    lng_raw: float
    name: str
    address: str
    lat: float
    lng: float
    floor: int
    status: StagingStatus
    reason: str
    logs: tuple[LogEntry, ...] = ()

    @staticmethod
    def from_result(
        item_id: str,
        upload_id: str,
        result: ValidationResult,
        *,
        name_raw: str,
        address_raw: str,
        lat_raw: float,
        lng_raw: float,
    ) -> StagingItem:
        return StagingItem(
            id=item_id,
            upload_id=upload_id,
            name_raw=name_raw,
            address_raw=address_raw,
            lat_raw=lat_raw,
            lng_raw=lng_raw,
            name=result.name,
            address=result.address,
            lat=result.lat,
            lng=result.lng,
            floor=result.floor,
            status=StagingStatus.for_action(result.action),
            reason=result.reason,
            logs=result.logs,
        )

    def updated(self, **fields: Any) -> StagingItem:
        return replace(self, **fields)

    def to_row(self) -> tuple[Any, ...]:
        values: list[Any] = []
        for col in STAGING_COLUMNS:
            if col == "status":
                values.append(self.status.value)
            elif col == "logs":
                # jsonb 열: [{message, type}]
                values.append(json.dumps([e.to_dict() for e in self.logs], ensure_ascii=False))
            else:
                values.append(getattr(self, col))
        return tuple(values)
