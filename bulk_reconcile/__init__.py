"""Bulk address reconciliation and classification for crowdsourced facility CSVs."""

__version__ = "0.3.0"
