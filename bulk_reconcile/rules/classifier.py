from __future__ import annotations

import math
from collections.abc import Iterable

from bulk_reconcile.models.config_models import DEFAULT_WIDE_AREA_KEYWORDS, Thresholds
from bulk_reconcile.models.geocode import GeocodeResult
from bulk_reconcile.models.row_data import ParsedRow
from bulk_reconcile.models.validation import Action, LogEntry, Severity, ValidationResult

from .normalizer import DEFAULT_FLOOR, is_wide_area

"""Classification engine.

Decision order (first match wins):

1. no usable geocode (None or a REGION centroid)
   - raw coordinate on land       -> immediate, keep raw
   - raw coordinate not on land   -> reject
   - no raw coordinate            -> reject
2. geocode, no raw coordinate     -> immediate, geocoded coordinate
3. geocode and raw coordinate, distance d between them
   - wide area:  d <= wide_area_m -> immediate; else review (raw kept)
   - building:   d <= building_immediate_m or building name match -> immediate (raw kept)
                 d <= building_review_m -> review (raw kept)
                 otherwise -> review with the geocoded coordinate as suggestion

The land check only matters in branch 1. Reasons quote the distance in whole meters.
"""

__all__ = [
    "EARTH_RADIUS_KM",
    "classify",
    "haversine_m",
]

EARTH_RADIUS_KM = 6371.0

DEFAULT_THRESHOLDS = Thresholds()


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c * 1000


def _parse_notes(parsed: ParsedRow) -> list[LogEntry]:
    logs: list[LogEntry] = []
    if parsed.floor != DEFAULT_FLOOR:
        logs.append(LogEntry(f"층수 추출됨: {parsed.floor}층"))
    if parsed.address != " ".join(parsed.address_raw.split()):
        logs.append(LogEntry(f"주소 보정됨: {parsed.address}"))
    return logs


def classify(
    parsed: ParsedRow,
    raw_lat: float,
    raw_lng: float,
    geocode: GeocodeResult | None,
    is_on_land: bool,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    wide_area_keywords: Iterable[str] = DEFAULT_WIDE_AREA_KEYWORDS,
) -> ValidationResult:
    logs = _parse_notes(parsed)
    wide = is_wide_area(parsed.name, wide_area_keywords)
    logs.append(LogEntry(f"타입 분류: {'넓은 구역' if wide else '건물/기관'}"))

    has_raw = raw_lat != 0 and raw_lng != 0

    def result(lat: float, lng: float, action: Action, reason: str) -> ValidationResult:
        return ValidationResult(
            name=parsed.name,
            address=parsed.address,
            floor=parsed.floor,
            lat=lat,
            lng=lng,
            action=action,
            reason=reason,
            logs=tuple(logs),
        )

    # 1. 지오코딩 실패 (REGION 수준 결과 포함)
    if geocode is None or not geocode.is_precise:
        if geocode is not None:
            logs.append(LogEntry(f"행정구역 수준 결과 무시: {geocode.formatted_address}", Severity.WARNING))
        if has_raw and is_on_land:
            reason = "지오코딩 실패했으나 원본 좌표가 유효(육지)하여 즉시 등록"
            logs.append(LogEntry(reason, Severity.WARNING))
            return result(raw_lat, raw_lng, Action.IMMEDIATE, reason)
        if has_raw:
            reason = "지오코딩 실패 및 원본 좌표 오류(바다/해외)"
            logs.append(LogEntry(reason, Severity.ERROR))
            return result(raw_lat, raw_lng, Action.REJECT, reason)
        reason = "주소 불명 및 좌표 없음"
        logs.append(LogEntry(reason, Severity.ERROR))
        return result(0.0, 0.0, Action.REJECT, reason)

    # 2. 원본 좌표 없음
    if not has_raw:
        reason = "원본 좌표 없어 주소 기반 좌표로 즉시 등록"
        logs.append(LogEntry(reason, Severity.SUCCESS))
        return result(geocode.lat, geocode.lng, Action.IMMEDIATE, reason)

    # 3. 거리 비교
    dist = haversine_m(raw_lat, raw_lng, geocode.lat, geocode.lng)
    meters = f"{dist:.0f}m"
    logs.append(LogEntry(f"좌표 거리 차이: {dist:.1f}m"))

    if wide:
        if dist <= thresholds.wide_area_m:
            reason = f"넓은 구역, 거리({meters}) 양호 -> 즉시 등록"
            logs.append(LogEntry(reason, Severity.SUCCESS))
            return result(raw_lat, raw_lng, Action.IMMEDIATE, reason)
        reason = f"넓은 구역, 거리 차이({meters}) 과다 -> 검수 필요"
        logs.append(LogEntry(reason, Severity.WARNING))
        return result(raw_lat, raw_lng, Action.REVIEW, reason)

    building = geocode.building_name or ""
    # 거리 상한 없음: 건물명 일치만으로 즉시 등록
    name_match = bool(building) and building in parsed.name
    if dist <= thresholds.building_immediate_m or name_match:
        if dist > thresholds.building_immediate_m:
            logs.append(LogEntry("건물명 일치 확인", Severity.SUCCESS))
            reason = f"거리({meters})는 멀지만 건물명 일치({building}) -> 즉시 등록"
        else:
            reason = f"거리({meters}) 양호 -> 즉시 등록"
        logs.append(LogEntry(reason, Severity.SUCCESS))
        return result(raw_lat, raw_lng, Action.IMMEDIATE, reason)
    if dist <= thresholds.building_review_m:
        reason = (
            f"거리 차이({meters}) 발생 "
            f"({thresholds.building_immediate_m:.0f}~{thresholds.building_review_m:.0f}m) -> 검수 필요"
        )
        logs.append(LogEntry(reason, Severity.WARNING))
        return result(raw_lat, raw_lng, Action.REVIEW, reason)
    reason = f"거리 차이({meters}) 과다 -> 검수 필요 (주소 좌표 제안)"
    logs.append(LogEntry(reason, Severity.WARNING))
    return result(geocode.lat, geocode.lng, Action.REVIEW, reason)
