from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from bulk_reconcile.models.config_models import (
    DEFAULT_WIDE_AREA_KEYWORDS,
    DatabaseConfig,
    GeocodingConfig,
    ReconcileConfig,
    RegionBound,
    Thresholds,
)

"""Config loader.

Responsibilities:
- Load YAML config/reconcile.yml (or the path given with --config)
- Validate against the packaged JSON schema (config_schema.json)
- Merge the packaged region table (regions.yml) with the config's `regions:` section
- Apply defaults and the KAKAO_REST_API_KEY environment override
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "load_region_table",
    "resolve_region_key",
]

_PACKAGE_DIR = Path(__file__).parent
SCHEMA_PATH = _PACKAGE_DIR / "config_schema.json"
REGIONS_PATH = _PACKAGE_DIR / "regions.yml"
DEFAULT_CONFIG_PATH = Path("config/reconcile.yml")

API_KEY_ENV = "KAKAO_REST_API_KEY"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (missing keys, wrong types,
            unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _region_from_raw(key: str, raw: dict[str, Any]) -> RegionBound:
    bound = RegionBound(
        key=key,
        name=str(raw["name"]),
        min_lat=float(raw["min_lat"]),
        max_lat=float(raw["max_lat"]),
        min_lng=float(raw["min_lng"]),
        max_lng=float(raw["max_lng"]),
        keywords=tuple(raw.get("keywords") or ()),
        national=bool(raw.get("national", False)),
    )
    if bound.min_lat > bound.max_lat or bound.min_lng > bound.max_lng:
        raise ConfigError(f"region {key}: min bound greater than max bound")
    return bound


def load_region_table(path: Path = REGIONS_PATH) -> dict[str, RegionBound]:
    """Load the packaged region bounding-box table."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot load region table {path}: {e}") from e
    return {key: _region_from_raw(key, value) for key, value in raw.items()}


def resolve_region_key(regions: dict[str, RegionBound], value: str) -> str:
    """Resolve a region key given as key, official name or keyword (case-insensitive key)."""
    if value in regions:
        return value
    lowered = value.strip().lower()
    for key, bound in regions.items():
        if key.lower() == lowered or bound.name == value.strip() or value.strip() in bound.keywords:
            return key
    raise ConfigError(f"unknown region: {value} (available: {', '.join(sorted(regions))})")


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ReconcileConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    regions = load_region_table()
    for key, raw in (data.get("regions") or {}).items():
        regions[key] = _region_from_raw(key, raw)  # 설정 파일 값이 기본 테이블보다 우선

    th_raw = data.get("thresholds") or {}
    thresholds = Thresholds(**th_raw)
    if thresholds.building_immediate_m > thresholds.building_review_m:
        raise ConfigError("thresholds: building_immediate_m must not exceed building_review_m")

    geo_raw = data.get("geocoding") or {}
    geocoding = GeocodingConfig(**geo_raw)
    env_key = os.environ.get(API_KEY_ENV)
    if env_key:
        geocoding = replace(geocoding, api_key=env_key)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    return ReconcileConfig(
        region=resolve_region_key(regions, data["region"]),
        regions=regions,
        encoding=data.get("encoding", "auto"),
        output_directory=data.get("output_directory", "./output"),
        fast_path=data.get("fast_path", "auto"),
        rate_limit_ms=data.get("rate_limit_ms", 100),
        chunk_size=data.get("chunk_size", 50),
        thresholds=thresholds,
        wide_area_keywords=tuple(data.get("wide_area_keywords") or DEFAULT_WIDE_AREA_KEYWORDS),
        geocoding=geocoding,
        database=db,
    )
