from __future__ import annotations

import pytest

from bulk_reconcile.models.config_models import Thresholds
from bulk_reconcile.models.geocode import AddressType, GeocodeResult
from bulk_reconcile.models.validation import Action
from bulk_reconcile.rules.classifier import classify, haversine_m
from bulk_reconcile.rules.normalizer import parse_row

RAW_LAT, RAW_LNG = 37.5665, 126.9780
# 위도 1도 = 약 111.2km
M_PER_DEG = 111_194.9


def geocode_at(meters_north: float, building: str | None = None, kind: AddressType = AddressType.ROAD) -> GeocodeResult:
    return GeocodeResult(
        lat=RAW_LAT + meters_north / M_PER_DEG,
        lng=RAW_LNG,
        formatted_address="서울특별시 중구 세종대로 110",
        address_type=kind,
        building_name=building,
    )


def test_haversine_known_distance():
    assert haversine_m(37.0, 127.0, 37.0, 127.0) == 0
    assert haversine_m(37.0, 127.0, 38.0, 127.0) == pytest.approx(M_PER_DEG, rel=1e-4)


def test_no_geocode_raw_on_land_is_immediate_with_raw():
    r = classify(parse_row("시청역", ""), RAW_LAT, RAW_LNG, None, True)
    assert r.action is Action.IMMEDIATE
    assert (r.lat, r.lng) == (RAW_LAT, RAW_LNG)
    assert "육지" in r.reason


def test_no_geocode_raw_at_sea_is_reject():
    r = classify(parse_row("시청역", ""), RAW_LAT, RAW_LNG, None, False)
    assert r.action is Action.REJECT
    assert "바다" in r.reason


def test_no_geocode_no_raw_is_reject_with_zero_coordinates():
    r = classify(parse_row("시청역", ""), 0, 0, None, False)
    assert r.action is Action.REJECT
    assert (r.lat, r.lng) == (0.0, 0.0)
    assert r.reason == "주소 불명 및 좌표 없음"


def test_region_result_is_treated_as_failure():
    r = classify(parse_row("시청역", ""), 0, 0, geocode_at(0, kind=AddressType.REGION), True)
    assert r.action is Action.REJECT
    assert any("행정구역" in e.message for e in r.logs)


def test_geocode_without_raw_is_immediate_with_geocoded_coordinates():
    g = geocode_at(10)
    r = classify(parse_row("시청역", "서울 중구 세종대로 110"), 0, 0, g, False)
    assert r.action is Action.IMMEDIATE
    assert (r.lat, r.lng) == (g.lat, g.lng)


@pytest.mark.parametrize("meters,action", [(150, Action.IMMEDIATE), (250, Action.REVIEW)])
def test_wide_area_band(meters, action):
    r = classify(parse_row("탑골공원", "서울 종로구 종로 99"), RAW_LAT, RAW_LNG, geocode_at(meters), True)
    assert r.action is action
    assert (r.lat, r.lng) == (RAW_LAT, RAW_LNG)
    assert "넓은 구역" in r.reason


def test_building_close_is_immediate_with_raw():
    r = classify(parse_row("시청역", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, geocode_at(30), True)
    assert r.action is Action.IMMEDIATE
    assert r.reason == "거리(30m) 양호 -> 즉시 등록"
    assert (r.lat, r.lng) == (RAW_LAT, RAW_LNG)


def test_building_name_match_overrides_distance():
    g = geocode_at(400, building="서울시청")
    r = classify(parse_row("서울시청 본관", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, g, True)
    assert r.action is Action.IMMEDIATE
    assert "건물명 일치(서울시청)" in r.reason


def test_building_middle_band_is_review_with_raw():
    r = classify(parse_row("시청역", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, geocode_at(100), True)
    assert r.action is Action.REVIEW
    assert "(50~150m)" in r.reason
    assert (r.lat, r.lng) == (RAW_LAT, RAW_LNG)


def test_building_far_is_review_suggesting_geocoded_coordinates():
    g = geocode_at(500)
    r = classify(parse_row("시청역", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, g, True)
    assert r.action is Action.REVIEW
    assert (r.lat, r.lng) == (g.lat, g.lng)
    assert "주소 좌표 제안" in r.reason


def test_custom_thresholds():
    r = classify(
        parse_row("시청역", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, geocode_at(100), True,
        thresholds=Thresholds(building_immediate_m=120, building_review_m=300),
    )
    assert r.action is Action.IMMEDIATE


def test_logs_record_parse_notes_and_type():
    r = classify(parse_row("시청역 지하1층", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, geocode_at(10), True)
    messages = [e.message for e in r.logs]
    assert messages[0] == "층수 추출됨: -1층"
    assert "타입 분류: 건물/기관" in messages
    assert r.floor == -1
    assert r.reason == messages[-1]


def test_same_120m_offset_park_immediate_building_review():
    g = geocode_at(120)
    park = classify(parse_row("중앙공원", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, g, True)
    building = classify(parse_row("시청별관", "서울 중구 세종대로 110"), RAW_LAT, RAW_LNG, g, True)
    assert park.action is Action.IMMEDIATE
    assert building.action is Action.REVIEW
    assert "120m" in park.reason and "120m" in building.reason


def test_address_note_only_when_name_appended():
    spaced = classify(parse_row("세종대로 110", "서울  중구   세종대로 110"), 0, 0, geocode_at(0), False)
    enriched = classify(parse_row("시청역", "서울 중구 세종대로 110"), 0, 0, geocode_at(0), False)
    assert not any(e.message.startswith("주소 보정됨") for e in spaced.logs)
    assert any(e.message == "주소 보정됨: 서울 중구 세종대로 110 시청역" for e in enriched.logs)
