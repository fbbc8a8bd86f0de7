"""Geocoding provider interface, Kakao Local client and the caching adapter."""

from bulk_reconcile.models.config_models import GeocodingConfig

from .adapter import GeocodingAdapter, clean_address, simplify_address
from .kakao import KakaoLocalProvider
from .provider import GeocodingError, GeocodingProvider, GeocodingUnavailableError, NullProvider

__all__ = [
    "GeocodingAdapter",
    "GeocodingError",
    "GeocodingProvider",
    "GeocodingUnavailableError",
    "KakaoLocalProvider",
    "NullProvider",
    "build_provider",
    "clean_address",
    "simplify_address",
]


def build_provider(config: GeocodingConfig) -> GeocodingProvider:
    """Provider named by `geocoding.provider` (kakao | none)."""
    if config.provider == "none":
        return NullProvider()
    return KakaoLocalProvider(config)
