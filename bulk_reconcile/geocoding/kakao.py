from __future__ import annotations

import logging
from typing import Any

import requests

from bulk_reconcile.models.config_models import GeocodingConfig
from bulk_reconcile.models.geocode import AddressType, GeocodeResult

from .provider import GeocodingError, GeocodingProvider, GeocodingUnavailableError

"""Kakao Local REST API provider.

Endpoints (GET, header `Authorization: KakaoAK <REST API key>`):
- /v2/local/search/address.json   address search
- /v2/local/search/keyword.json   place (keyword) search
- /v2/local/geo/coord2address.json  reverse geocoding (x=lng, y=lat)
"""

__all__ = [
    "KakaoLocalProvider",
    "map_address_type",
]

logger = logging.getLogger(__name__)

ADDRESS_PATH = "/v2/local/search/address.json"
KEYWORD_PATH = "/v2/local/search/keyword.json"
COORD2ADDRESS_PATH = "/v2/local/geo/coord2address.json"

# Kakao address_type -> AddressType. ROAD 는 도로명만 일치(건물번호 없음)라 점 좌표가 아님
_ADDRESS_TYPES = {
    "ROAD_ADDR": AddressType.ROAD,
    "REGION_ADDR": AddressType.JIBUN,
    "REGION": AddressType.REGION,
    "ROAD": AddressType.REGION,
}


def map_address_type(raw: str | None) -> AddressType:
    return _ADDRESS_TYPES.get(raw or "", AddressType.REGION)


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise GeocodingError(f"invalid coordinate in response: {value!r}") from e


class KakaoLocalProvider(GeocodingProvider):
    name = "kakao"

    def __init__(self, config: GeocodingConfig, session: requests.Session | None = None) -> None:
        if not config.api_key:
            raise GeocodingUnavailableError("Kakao REST API key is not configured")
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout_sec
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"KakaoAK {config.api_key}"})

    def _get(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.ConnectionError as e:
            raise GeocodingUnavailableError(f"cannot reach {self.base_url}: {e}") from e
        except requests.RequestException as e:
            raise GeocodingError(f"request failed: {e}") from e

        if response.status_code in (401, 403):
            raise GeocodingUnavailableError(f"credentials rejected (HTTP {response.status_code})")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise GeocodingError(f"HTTP {response.status_code} for {path}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise GeocodingError(f"invalid JSON from {path}") from e
        documents = payload.get("documents") if isinstance(payload, dict) else None
        if not isinstance(documents, list):
            raise GeocodingError(f"unexpected response shape from {path}")
        logger.debug("kakao %s params=%s documents=%d", path, params, len(documents))
        return documents

    def search_address(self, query: str) -> GeocodeResult | None:
        documents = self._get(ADDRESS_PATH, {"query": query, "size": 1})
        if not documents:
            return None
        item = documents[0]
        road = item.get("road_address") or {}
        jibun = item.get("address") or {}
        return GeocodeResult(
            lat=_float(item.get("y")),
            lng=_float(item.get("x")),
            formatted_address=road.get("address_name") or jibun.get("address_name") or item.get("address_name", ""),
            address_type=map_address_type(item.get("address_type")),
            building_name=road.get("building_name") or None,
        )

    def search_keyword(self, query: str) -> GeocodeResult | None:
        documents = self._get(KEYWORD_PATH, {"query": query, "size": 1})
        if not documents:
            return None
        item = documents[0]
        return GeocodeResult(
            lat=_float(item.get("y")),
            lng=_float(item.get("x")),
            formatted_address=item.get("road_address_name") or item.get("address_name", ""),
            address_type=AddressType.KEYWORD,
            place_name=item.get("place_name") or None,
        )

    def reverse(self, lat: float, lng: float) -> str | None:
        documents = self._get(COORD2ADDRESS_PATH, {"x": lng, "y": lat})
        if not documents:
            return None
        item = documents[0]
        road = item.get("road_address") or {}
        jibun = item.get("address") or {}
        return road.get("address_name") or jibun.get("address_name") or None

    def close(self) -> None:
        self.session.close()
