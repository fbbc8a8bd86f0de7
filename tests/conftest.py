# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from bulk_reconcile.config.loader import load_region_table
from bulk_reconcile.db.land_check import BoundingBoxLandChecker
from bulk_reconcile.db.store import InMemoryDirectoryStore
from bulk_reconcile.geocoding.adapter import GeocodingAdapter
from bulk_reconcile.geocoding.provider import GeocodingError, GeocodingProvider, GeocodingUnavailableError
from bulk_reconcile.logging.error_log import ErrorLogBuffer
from bulk_reconcile.models.config_models import ReconcileConfig
from bulk_reconcile.models.geocode import AddressType, GeocodeResult


class FakeGeocodingProvider(GeocodingProvider):
    """Deterministic provider: answers from dicts and records every call."""

    name = "fake"

    def __init__(
        self,
        addresses: dict[str, GeocodeResult] | None = None,
        keywords: dict[str, GeocodeResult] | None = None,
        reverse: dict[tuple[float, float], str] | None = None,
        fail: set[str] | None = None,
        unavailable: bool = False,
    ) -> None:
        self.addresses = addresses or {}
        self.keywords = keywords or {}
        self.reverse_map = reverse or {}
        self.fail = fail or set()
        self.unavailable = unavailable
        self.calls: list[tuple[str, object]] = []

    def _check(self, query: str) -> None:
        if self.unavailable:
            raise GeocodingUnavailableError("provider down")
        if query in self.fail:
            raise GeocodingError(f"HTTP 500 for {query}")

    def search_address(self, query: str) -> GeocodeResult | None:
        self.calls.append(("address", query))
        self._check(query)
        return self.addresses.get(query)

    def search_keyword(self, query: str) -> GeocodeResult | None:
        self.calls.append(("keyword", query))
        self._check(query)
        return self.keywords.get(query)

    def reverse(self, lat: float, lng: float) -> str | None:
        self.calls.append(("reverse", (lat, lng)))
        if self.unavailable:
            raise GeocodingUnavailableError("provider down")
        return self.reverse_map.get((lat, lng))


def road(lat: float, lng: float, address: str = "서울특별시 중구 세종대로 110", building: str | None = None) -> GeocodeResult:
    return GeocodeResult(lat=lat, lng=lng, formatted_address=address, address_type=AddressType.ROAD, building_name=building)


def region_result(lat: float = 37.5665, lng: float = 126.9780, address: str = "서울특별시") -> GeocodeResult:
    return GeocodeResult(lat=lat, lng=lng, formatted_address=address, address_type=AddressType.REGION)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """region: Seoul
encoding: auto
output_directory: ./output
fast_path: auto
rate_limit_ms: 0
chunk_size: 50
geocoding:
  provider: none
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "reconcile.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def reconcile_config(temp_workdir: Path) -> ReconcileConfig:
    return ReconcileConfig(
        region="Seoul",
        regions=load_region_table(),
        output_directory=str(temp_workdir / "output"),
        rate_limit_ms=0,
        chunk_size=2,
    )


@pytest.fixture()
def store() -> InMemoryDirectoryStore:
    return InMemoryDirectoryStore()


@pytest.fixture()
def land_checker() -> BoundingBoxLandChecker:
    return BoundingBoxLandChecker()


@pytest.fixture()
def fake_provider() -> FakeGeocodingProvider:
    return FakeGeocodingProvider()


@pytest.fixture()
def adapter(fake_provider: FakeGeocodingProvider) -> GeocodingAdapter:
    return GeocodingAdapter(fake_provider)


@pytest.fixture()
def error_log(temp_workdir: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(temp_workdir / "logs")


@pytest.fixture()
def write_csv(temp_workdir: Path):
    def _write(name: str, text: str, encoding: str = "utf-8") -> Path:
        path = temp_workdir / "data" / name
        path.write_bytes(text.encode(encoding))
        return path
    return _write
