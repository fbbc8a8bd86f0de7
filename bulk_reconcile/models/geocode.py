from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Geocoding result model.

AddressType.REGION marks an administrative-region centroid rather than a point;
precision-sensitive callers treat it the same as "not found".
"""

__all__ = [
    "AddressType",
    "GeocodeResult",
]


class AddressType(Enum):
    ROAD = "ROAD"  # 도로명 주소
    JIBUN = "JIBUN"  # 지번 주소
    REGION = "REGION"  # 지명/행정구역 중심점 (정밀도 부족)
    KEYWORD = "KEYWORD"  # 장소(키워드) 검색 결과


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float
    formatted_address: str
    address_type: AddressType
    building_name: str | None = None
    place_name: str | None = None

    @property
    def is_precise(self) -> bool:
        return self.address_type is not AddressType.REGION
