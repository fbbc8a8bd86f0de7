from __future__ import annotations

import pytest

from bulk_reconcile.rules.normalizer import clean_name_for_search, extract_floor, is_wide_area, parse_row


@pytest.mark.parametrize(
    "text,floor",
    [
        ("지하1층", -1),
        ("지하 2 층", -2),
        ("B1", -1),
        ("b2층", -2),
        ("B1F", -1),
        ("3층", 3),
        ("2F", 2),
        ("12 층", 12),
    ],
)
def test_extract_floor_tokens(text, floor):
    assert extract_floor(text)[0] == floor


def test_extract_floor_none_when_absent():
    assert extract_floor("시청역 화장실") == (None, "시청역 화장실")


def test_basement_checked_before_ground_floor():
    floor, rest = extract_floor("지하1층 2층 연결통로")
    assert floor == -1
    assert rest == "2층 연결통로"


def test_parse_row_floor_from_name_is_stripped_from_name():
    parsed = parse_row("시청역 지하1층 화장실", "서울 중구 세종대로 110")
    assert parsed.floor == -1
    assert parsed.name == "시청역 화장실"
    assert parsed.name_raw == "시청역 지하1층 화장실"


def test_parse_row_floor_from_address_keeps_address():
    parsed = parse_row("시청역", "서울 중구 세종대로 110 3층")
    assert parsed.floor == 3
    assert parsed.address.startswith("서울 중구 세종대로 110 3층")


def test_parse_row_defaults_to_first_floor():
    assert parse_row("공원", "서울 종로구 1").floor == 1
    assert parse_row("0층 매장", "서울 종로구 1").floor == 1


def test_parse_row_appends_cleaned_name():
    parsed = parse_row("탑골공원 공중화장실", "서울 종로구  종로 99")
    assert parsed.address == "서울 종로구 종로 99 탑골공원"


def test_parse_row_does_not_append_name_already_in_address():
    parsed = parse_row("탑골공원", "서울 종로구 종로 99 탑골공원")
    assert parsed.address == "서울 종로구 종로 99 탑골공원"


def test_parse_row_empty_address_uses_cleaned_name():
    assert parse_row("시청역 화장실", "").address == "시청역"


def test_clean_name_for_search_strips_boilerplate():
    assert clean_name_for_search("(구)시청역 ① 개방화장실 [남자] 2F!") == "시청역"
    assert clean_name_for_search("장애인 화장실") == ""


def test_is_wide_area():
    assert is_wide_area("어린이대공원 화장실")
    assert is_wide_area("한강수변 화장실")
    assert not is_wide_area("시청역")
    assert is_wide_area("시청역", keywords=("역",))


def test_parse_row_drops_brackets_left_by_floor_token():
    parsed = parse_row("시청역 화장실(B1)", "서울 중구 세종대로 110")
    assert parsed.name == "시청역 화장실"
    assert parsed.floor == -1
    assert extract_floor("[2층] 매표소") == (2, "매표소")
