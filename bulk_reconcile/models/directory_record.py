from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

"""Live directory record (the `toilets` table row written for accepted rows)."""

__all__ = [
    "DirectoryRecord",
    "RECORD_COLUMNS",
]

# toilets 테이블 INSERT 열 순서
RECORD_COLUMNS: tuple[str, ...] = (
    "id", "type", "name", "address", "floor", "male_stalls", "female_stalls",
    "opening_hours", "lat", "lng", "note", "source", "is_verified", "created_at",
)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DirectoryRecord:
    id: str
    name: str
    address: str
    lat: float
    lng: float
    floor: int = 1
    type: str = "공중화장실"
    male_stalls: str = ""
    female_stalls: str = ""
    opening_hours: str = ""
    note: str = ""
    source: str = "admin"
    is_verified: bool = True
    created_at: str = field(default_factory=_now_iso)

    @property
    def stall_count(self) -> int:
        """Total stalls, at least 1 when counts are missing."""
        total = 0
        for raw in (self.male_stalls, self.female_stalls):
            try:
                total += int(str(raw).strip() or 0)
            except ValueError:
                continue
        return total or 1

    def to_row(self) -> tuple[Any, ...]:
        return tuple(getattr(self, col) for col in RECORD_COLUMNS)
