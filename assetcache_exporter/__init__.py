"""Prometheus exporter for the macOS Content Caching service.

Subpackages and modules:
- ``assetcache_exporter.common``: configuration, logging, and the metric registry.
- ``assetcache_exporter.status``: runs ``AssetCacheManagerUtil`` and decodes its output.
- ``assetcache_exporter.catalog``: the declarative table of exported metrics.
- ``assetcache_exporter.loop``: the periodic fetch/extract/update cycle.

Usage:
- Run ``assetcache-exporter`` (or ``python -m assetcache_exporter.main``) and
  scrape ``http://<host>:9923/metrics``.
"""

__version__ = "0.1.0"
