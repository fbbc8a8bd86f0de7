"""Row normalization and classification rules."""

from .classifier import classify, haversine_m
from .normalizer import clean_name_for_search, extract_floor, is_wide_area, parse_row

__all__ = ["classify", "haversine_m", "clean_name_for_search", "extract_floor", "is_wide_area", "parse_row"]
