from __future__ import annotations

import re
from collections.abc import Iterable

from bulk_reconcile.models.config_models import DEFAULT_WIDE_AREA_KEYWORDS
from bulk_reconcile.models.row_data import ParsedRow

"""Row normalizer: floor extraction, search-name cleanup and address enrichment.

parse_row is meant to run once per raw row; the enrichment step only appends the
cleaned name when it is not already a substring of the address.
"""

__all__ = [
    "DEFAULT_FLOOR",
    "parse_row",
    "extract_floor",
    "clean_name_for_search",
    "is_wide_area",
]

DEFAULT_FLOOR = 1

# 지하 N층 / BN (B1F, B2층 포함) -> -N. 반드시 지상층 패턴보다 먼저 검사
_BASEMENT_RE = re.compile(r"지하\s*(\d+)\s*층?|(?<![A-Za-z])[Bb](\d+)(?:\s*층|[Ff](?![A-Za-z]))?")
# N층 / NF -> N
_FLOOR_RE = re.compile(r"(\d+)\s*층|(?<![A-Za-z])(\d+)\s*[Ff](?![A-Za-z])")
# 층 토큰 제거 후 남은 빈 괄호
_EMPTY_BRACKETS_RE = re.compile(r"\(\s*\)|\[\s*\]")

_BRACKETS_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_CIRCLED_RE = re.compile(r"[①-⑳❶-❿㉠-㉭㉮-㉯]")
_PUNCT_RE = re.compile(r"[^\w\s가-힣]")
_NAME_FLOOR_TOKENS_RE = re.compile(
    r"지하\s*\d+\s*층?|(?<![A-Za-z0-9])[Bb]?\d+\s*[Ff](?![A-Za-z])|\d+\s*층"
)
_TOILET_WORD = "화장실"
_QUALIFIERS_RE = re.compile(r"공중|개방|남자|여자|장애인")
_SPACES_RE = re.compile(r"\s+")


def _collapse(text: str) -> str:
    return _SPACES_RE.sub(" ", text).strip()


def _remove_span(text: str, start: int, end: int) -> str:
    return _collapse(_EMPTY_BRACKETS_RE.sub(" ", text[:start] + " " + text[end:]))


def extract_floor(text: str) -> tuple[int | None, str]:
    """Find a floor token in text.

    Returns:
        (floor or None, text with the matched token removed and whitespace collapsed)
    """
    m = _BASEMENT_RE.search(text)
    if m:
        digits = m.group(1) or m.group(2)
        return -int(digits), _remove_span(text, m.start(), m.end())
    m = _FLOOR_RE.search(text)
    if m:
        digits = m.group(1) or m.group(2)
        return int(digits), _remove_span(text, m.start(), m.end())
    return None, text


def clean_name_for_search(name: str) -> str:
    """Strip boilerplate from a facility name so it works as a search keyword."""
    text = _BRACKETS_RE.sub(" ", name)
    text = _CIRCLED_RE.sub("", text)
    text = _PUNCT_RE.sub(" ", text)
    text = _NAME_FLOOR_TOKENS_RE.sub(" ", text)
    text = text.replace(_TOILET_WORD, " ")
    text = _QUALIFIERS_RE.sub(" ", text)
    return _collapse(text)


def is_wide_area(name: str, keywords: Iterable[str] = DEFAULT_WIDE_AREA_KEYWORDS) -> bool:
    """Wide-area venues (parks, schools, stadiums...) tolerate larger coordinate offsets."""
    return any(k in name for k in keywords)


def parse_row(name_raw: str, address_raw: str) -> ParsedRow:
    name = _collapse(name_raw)
    address = _collapse(address_raw)

    # 이름에서 먼저 찾고, 없을 때만 주소에서 찾는다 (주소 문자열은 그대로 둠)
    floor, stripped = extract_floor(name)
    if floor is not None:
        name = stripped
    else:
        floor, _ = extract_floor(address)
    if floor is None or floor == 0:
        floor = DEFAULT_FLOOR

    cleaned = clean_name_for_search(name)
    if cleaned and cleaned not in address:
        address = f"{address} {cleaned}" if address else cleaned

    return ParsedRow(
        name=name,
        address=address,
        floor=floor,
        name_raw=name_raw,
        address_raw=address_raw,
    )
