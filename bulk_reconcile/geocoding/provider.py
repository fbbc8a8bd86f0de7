from __future__ import annotations

from bulk_reconcile.models.geocode import GeocodeResult

"""Geocoding provider interface.

A provider performs exactly one remote lookup per call and knows nothing about
caching, escalation or rate limits (see GeocodingAdapter). Misses return None;
transport problems raise GeocodingError, and GeocodingUnavailableError when the
provider cannot be used at all (unreachable, credentials rejected).
"""

__all__ = [
    "GeocodingError",
    "GeocodingUnavailableError",
    "GeocodingProvider",
    "NullProvider",
]


class GeocodingError(Exception):
    """A single lookup failed (HTTP error, malformed response)."""


class GeocodingUnavailableError(GeocodingError):
    """The provider cannot serve any request for the rest of the run."""


class GeocodingProvider:
    """Base class for concrete providers."""

    name = "provider"
    remote = True  # False 이면 API 호출 수/요청 간격 대상이 아님

    def search_address(self, query: str) -> GeocodeResult | None:
        raise NotImplementedError

    def search_keyword(self, query: str) -> GeocodeResult | None:
        raise NotImplementedError

    def reverse(self, lat: float, lng: float) -> str | None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class NullProvider(GeocodingProvider):
    """No provider configured: every lookup misses."""

    name = "none"
    remote = False

    def search_address(self, query: str) -> GeocodeResult | None:
        return None

    def search_keyword(self, query: str) -> GeocodeResult | None:
        return None

    def reverse(self, lat: float, lng: float) -> str | None:
        return None
