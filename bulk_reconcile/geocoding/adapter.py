from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from bulk_reconcile.models.geocode import GeocodeResult

from .provider import GeocodingError, GeocodingProvider, GeocodingUnavailableError

"""Geocoding adapter: escalation, per-run memoization and degraded mode.

geocode_address escalation (stops at the first result, REGION results included):
  1. exact address search on the cleaned address
  2. simplified address (text after the first building number dropped), if different
  3. keyword search on the cleaned address

Every lookup is memoized by its verbatim input for the lifetime of the adapter,
misses included. Step 3 shares the keyword cache with keyword_search. Failed calls are not memoized. The adapter never sleeps; the
orchestrator spaces out calls using `api_calls`.
"""

__all__ = [
    "GeocodingAdapter",
    "clean_address",
    "simplify_address",
    "reverse_key",
]

logger = logging.getLogger(__name__)

_BRACKETS_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_INVISIBLE_RE = re.compile("[\u200b-\u200d\ufeff]")
_SPACES_RE = re.compile(r"\s+")
# "테헤란로 123 어느빌딩 2층" -> "테헤란로 123"
_SIMPLIFY_RE = re.compile(r"(\s\d+(?:-\d+)?)\s+.+$")

_FAILED = object()


def clean_address(address: str) -> str:
    text = _BRACKETS_RE.sub("", address)
    text = _INVISIBLE_RE.sub("", text)
    return _SPACES_RE.sub(" ", text).strip()


def simplify_address(address: str) -> str:
    return _SIMPLIFY_RE.sub(r"\1", address, count=1).strip()


def reverse_key(lat: float, lng: float) -> str:
    return f"{lat:.6f},{lng:.6f}"


class GeocodingAdapter:
    def __init__(self, provider: GeocodingProvider) -> None:
        self.provider = provider
        self.api_calls = 0
        self.cache_hits = 0
        self.degraded = False
        self._geocode_cache: dict[str, GeocodeResult | None] = {}
        self._keyword_cache: dict[str, GeocodeResult | None] = {}
        self._reverse_cache: dict[str, str | None] = {}

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self.degraded:
            return _FAILED
        if self.provider.remote:
            self.api_calls += 1
        try:
            return fn(*args)
        except GeocodingUnavailableError as e:
            self.degraded = True
            logger.warning("geocoding provider unavailable, continuing without geocoding: %s", e)
            return _FAILED
        except GeocodingError as e:
            logger.warning("geocoding lookup failed (%s %r): %s", fn.__name__, args, e)
            return _FAILED

    def geocode_address(self, address: str) -> GeocodeResult | None:
        if address in self._geocode_cache:
            self.cache_hits += 1
            return self._geocode_cache[address]
        if self.degraded:
            return None

        cleaned = clean_address(address)
        if not cleaned:
            self._geocode_cache[address] = None
            return None

        attempts: list[tuple[str, str]] = [("address", cleaned)]
        simplified = simplify_address(cleaned)
        if simplified and simplified != cleaned:
            attempts.append(("address", simplified))
        attempts.append(("keyword", cleaned))

        failed = False
        result: GeocodeResult | None = None
        for kind, query in attempts:
            if kind == "keyword":
                outcome = self._keyword(query)
            else:
                outcome = self._call(self.provider.search_address, query)
            if outcome is _FAILED:
                failed = True
                if self.degraded:
                    return None
                continue
            if outcome is not None:
                result = outcome
                logger.debug("geocoded %r via %s(%r)", address, kind, query)
                break

        if result is not None or not failed:
            self._geocode_cache[address] = result
        return result

    def _keyword(self, query: str) -> Any:
        if query in self._keyword_cache:
            self.cache_hits += 1
            return self._keyword_cache[query]
        outcome = self._call(self.provider.search_keyword, query)
        if outcome is not _FAILED:
            self._keyword_cache[query] = outcome
        return outcome

    def keyword_search(self, query: str) -> GeocodeResult | None:
        outcome = self._keyword(query)
        return None if outcome is _FAILED else outcome

    def reverse_geocode(self, lat: float, lng: float) -> str | None:
        key = reverse_key(lat, lng)
        if key in self._reverse_cache:
            self.cache_hits += 1
            return self._reverse_cache[key]
        outcome = self._call(self.provider.reverse, lat, lng)
        if outcome is _FAILED:
            return None
        self._reverse_cache[key] = outcome
        return outcome
