"""Common utilities shared by the exporter components.

Includes:
- ``config``: Pydantic-based exporter configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: the Prometheus-backed metric registry and self-instrumentation.

Import pattern:
- from assetcache_exporter.common.config import ExporterConfig
- from assetcache_exporter.common.logging import configure_logging
"""
