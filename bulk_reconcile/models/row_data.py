from __future__ import annotations

from dataclasses import dataclass

"""Row models for the bulk reconciliation tool.

RawRow is one tokenized CSV record (positional string cells, header excluded).
ParsedRow is the normalizer's output for one record.
"""

__all__ = [
    "RawRow",
    "ParsedRow",
    "RowFields",
]

RawRow = list[str]


@dataclass(frozen=True)
class ParsedRow:
    """Normalized facility row.

    floor defaults to 1; basement floors are negative. address is the raw address
    with the cleaned facility name appended when it was not already contained.
    """
    name: str
    address: str
    floor: int
    name_raw: str
    address_raw: str


@dataclass(frozen=True)
class RowFields:
    """Logical fields extracted from a RawRow through a ColumnMap."""
    name: str
    road_address: str
    jibun_address: str
    lat: float  # 0.0 when absent / unparsable
    lng: float
    facility_type: str = "공중화장실"
    male_stalls: str = ""
    female_stalls: str = ""
    opening_hours: str = ""
    memo: str = ""
    floor: str = ""  # 정제 파일(Fast-Path)의 층수 열

    @property
    def address(self) -> str:
        """Road address preferred over lot (jibun) address."""
        return self.road_address or self.jibun_address

    @property
    def has_coordinates(self) -> bool:
        return self.lat != 0 and self.lng != 0
