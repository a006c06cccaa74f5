"""Source ingestion pipeline.

This package reads the legacy database container and normalizes rows.
It prepares watermark-filtered readings for the store layer.
"""
