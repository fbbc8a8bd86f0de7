from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the bulk reconciliation tool.

Built by `bulk_reconcile.config.loader.load_config` from `config/reconcile.yml`
after schema validation. Region bounding boxes are plain data so tests can define
synthetic regions without touching production geography.
"""

# 넓은 구역 키워드 (공원/학교/운동장 등)
DEFAULT_WIDE_AREA_KEYWORDS: tuple[str, ...] = (
    "공원", "운동장", "학교", "캠퍼스", "대학교", "초등학교", "중학교", "고등학교",
    "체육관", "경기장", "수변", "광장", "유원지",
)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class RegionBound:
    """Rectangular bounding box of a selectable region."""
    key: str
    name: str  # 행정구역 정식 명칭 (주소 prefix 로 사용)
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    keywords: tuple[str, ...] = ()
    national: bool = False  # 전국 범위: 주소 prefix / 재검색 대상 아님

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


@dataclass(frozen=True)
class Thresholds:
    """Distance bands (meters) used by the classifier."""
    wide_area_m: float = 200.0
    building_immediate_m: float = 50.0
    building_review_m: float = 150.0


@dataclass(frozen=True)
class GeocodingConfig:
    provider: str = "kakao"  # kakao | none
    api_key: str | None = None
    base_url: str = "https://dapi.kakao.com"
    timeout_sec: float = 5.0


@dataclass(frozen=True)
class ReconcileConfig:
    """Root configuration object for one reconciliation run."""
    region: str  # 기본 지역 키 (regions 의 key)
    regions: dict[str, RegionBound]
    encoding: str = "auto"
    output_directory: str = "./output"
    fast_path: str = "auto"  # auto | always | never
    rate_limit_ms: int = 100
    chunk_size: int = 50
    thresholds: Thresholds = field(default_factory=Thresholds)
    wide_area_keywords: tuple[str, ...] = DEFAULT_WIDE_AREA_KEYWORDS
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def region_bound(self, key: str | None = None) -> RegionBound:
        return self.regions[key or self.region]


# 육지 판정 RPC 를 호출할 대략적인 국내 범위
LAND_CHECK_BOUND = RegionBound(
    key="National", name="대한민국", min_lat=33.0, max_lat=43.0,
    min_lng=124.0, max_lng=132.0, national=True,
)
