from __future__ import annotations

import math
from dataclasses import dataclass

from bulk_reconcile.models.row_data import RawRow, RowFields

"""Column mapping for heterogeneous facility CSV headers.

Each logical field has an ordered list of candidate header substrings; the first
candidate found in any (not yet claimed) header wins. Fields with no matching header
fall back to a fixed positional index, which matches the column order of the public
toilet dataset.
"""

__all__ = [
    "ColumnMap",
    "ACCEPTED_HEADERS",
    "detect_columns",
    "extract_fields",
    "is_vetted_export",
]

# 정제 파일(accepted export) 헤더
ACCEPTED_HEADERS: tuple[str, ...] = (
    "구분", "화장실명", "주소", "층수", "남성변기수", "여성변기수", "개방시간상세", "WGS84위도", "WGS84경도",
)

# 필드 -> 후보 헤더 부분문자열 (우선순위 순, 영문은 소문자 비교)
_CANDIDATES: dict[str, tuple[str, ...]] = {
    "lat": ("wgs84위도", "위도", "latitude", "lat"),
    "lng": ("wgs84경도", "경도", "longitude", "lng", "lon"),
    "name": ("화장실명", "건물명", "시설명", "이름", "name"),
    "jibun": ("지번", "jibun"),
    "road": ("도로명", "road", "주소"),  # jibun 이후에 매칭
    "type": ("구분", "type"),
    "male": ("남성용-대변기수", "남성변기수", "남성대변기", "남성용"),
    "female": ("여성용-대변기수", "여성변기수", "여성대변기", "여성용"),
    "hours": ("개방시간",),
    "memo": ("메모", "memo"),
    "floor": ("층수",),
}

# 헤더로 찾지 못한 필드의 위치 기본값 (공공데이터 공중화장실 표준 순서)
_FALLBACKS: dict[str, int] = {
    "type": 0,
    "name": 1,
    "road": 2,
    "jibun": 3,
    "lat": 7,
    "lng": 8,
}


@dataclass(frozen=True)
class ColumnMap:
    """Column index per logical field (-1 = absent)."""
    name: int
    road: int
    jibun: int
    lat: int
    lng: int
    type: int = -1
    male: int = -1
    female: int = -1
    hours: int = -1
    memo: int = -1
    floor: int = -1
    detected: frozenset[str] = frozenset()  # 헤더로 찾은 필드

    def describe(self) -> str:
        text = (
            f"컬럼 매핑: 이름({self.name}), 주소({self.road}/{self.jibun}), "
            f"좌표({self.lat},{self.lng})"
        )
        if self.male >= 0 or self.female >= 0:
            text += f", 변기수({self.male}/{self.female})"
        return text


def detect_columns(header: list[str]) -> ColumnMap:
    """Map header cells to logical fields."""
    normalized = [h.replace('"', "").strip().lower() for h in header]
    claimed: set[int] = set()
    indices: dict[str, int] = {}
    detected: set[str] = set()

    for field, candidates in _CANDIDATES.items():
        found = -1
        for candidate in candidates:
            for idx, col in enumerate(normalized):
                if idx in claimed:
                    continue
                if candidate in col:
                    found = idx
                    break
            if found >= 0:
                break
        if found >= 0:
            claimed.add(found)
            detected.add(field)
            indices[field] = found

    # 위치 기본값은 헤더로 점유되지 않은 열에만 적용
    for field in _CANDIDATES:
        if field not in indices:
            fallback = _FALLBACKS.get(field, -1)
            indices[field] = fallback if fallback >= 0 and fallback not in claimed else -1

    return ColumnMap(detected=frozenset(detected), **indices)


def is_vetted_export(header: list[str]) -> bool:
    """True when the header carries every accepted-export column (fast path input)."""
    cells = {h.replace('"', "").strip() for h in header}
    return all(col in cells for col in ACCEPTED_HEADERS)


def _cell(row: RawRow, idx: int) -> str:
    if idx < 0 or idx >= len(row):
        return ""
    return row[idx].replace('"', "").strip()


def _coordinate(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def extract_fields(row: RawRow, columns: ColumnMap) -> RowFields:
    """Pull the logical fields out of one tokenized row."""
    return RowFields(
        name=_cell(row, columns.name),
        road_address=_cell(row, columns.road),
        jibun_address=_cell(row, columns.jibun),
        lat=_coordinate(_cell(row, columns.lat)),
        lng=_coordinate(_cell(row, columns.lng)),
        facility_type=_cell(row, columns.type) or "공중화장실",
        male_stalls=_cell(row, columns.male),
        female_stalls=_cell(row, columns.female),
        opening_hours=_cell(row, columns.hours),
        memo=_cell(row, columns.memo),
        floor=_cell(row, columns.floor),
    )
