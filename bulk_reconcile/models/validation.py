from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

"""Classification decision models.

A ValidationResult is the unit of output per row. Its logs are a tuple so the
decision trace cannot be mutated once the result is built.
"""

__all__ = [
    "Action",
    "Severity",
    "LogEntry",
    "ValidationResult",
]


class Action(Enum):
    IMMEDIATE = "immediate"  # 즉시 등록
    REVIEW = "review"  # 검수 필요
    REJECT = "reject"  # 등록 불가


class Severity(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    message: str
    severity: Severity = Severity.INFO

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "type": self.severity.value}


@dataclass(frozen=True)
class ValidationResult:
    name: str
    address: str
    floor: int
    lat: float
    lng: float
    action: Action
    reason: str
    logs: tuple[LogEntry, ...] = ()

    def __post_init__(self) -> None:
        if not self.reason:
            raise ValueError("ValidationResult.reason must be non-empty")

    def with_coordinates(self, lat: float, lng: float, address: str | None = None) -> ValidationResult:
        """Copy with corrected coordinates; action, reason and logs are kept."""
        return replace(self, lat=lat, lng=lng, address=address if address is not None else self.address)

    def with_logs(self, *entries: LogEntry) -> ValidationResult:
        """Copy with entries appended to the decision trace."""
        return replace(self, logs=self.logs + tuple(entries))
