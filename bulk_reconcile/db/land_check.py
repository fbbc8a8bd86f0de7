from __future__ import annotations

import logging
from typing import Any

import psycopg2

from bulk_reconcile.models.config_models import LAND_CHECK_BOUND, RegionBound

"""Land/sea validity check for raw coordinates.

PostgresLandChecker calls the PostGIS function `check_is_on_land(lat, lng)`; if
the call fails it answers with the coarse national bounding box instead.
"""

__all__ = [
    "LandChecker",
    "BoundingBoxLandChecker",
    "PostgresLandChecker",
]

logger = logging.getLogger(__name__)


class LandChecker:
    def is_on_land(self, lat: float, lng: float) -> bool:
        raise NotImplementedError


class BoundingBoxLandChecker(LandChecker):
    """Treats everything inside a rectangle as land (mock mode / fallback)."""

    def __init__(self, bound: RegionBound = LAND_CHECK_BOUND) -> None:
        self.bound = bound

    def is_on_land(self, lat: float, lng: float) -> bool:
        return self.bound.contains(lat, lng)


class PostgresLandChecker(LandChecker):
    def __init__(self, cursor: Any, fallback: LandChecker | None = None) -> None:
        self.cursor = cursor
        self.fallback = fallback or BoundingBoxLandChecker()
        self.calls = 0

    def is_on_land(self, lat: float, lng: float) -> bool:
        self.calls += 1
        try:
            self.cursor.execute("SELECT check_is_on_land(%s, %s)", (lat, lng))
            row = self.cursor.fetchone()
        except psycopg2.Error as e:
            logger.warning("check_is_on_land failed, using bounding box: %s", e)
            try:
                self.cursor.execute("ROLLBACK")
            except psycopg2.Error:  # pragma: no cover
                logger.debug("rollback after land check failure failed", exc_info=True)
            return self.fallback.is_on_land(lat, lng)
        return bool(row and row[0])
