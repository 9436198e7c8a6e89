"""Tests for the asset cache exporter.

Unit tests cover configuration, the metric registry, the metric catalog, the
status fetcher and the collection loop. ``tests/integration`` drives the whole
exporter against a simulated status tool.
"""
