"""Shared pytest fixtures."""

import pytest
import structlog
from prometheus_client import CollectorRegistry

from assetcache_exporter.common.metrics import MetricRegistry
from tests.helpers import make_status


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Keep logging configuration from leaking between tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def status_result():
    """A complete, valid status ``result`` object."""
    return make_status()


@pytest.fixture
def registry():
    """A metric registry backed by an isolated ``CollectorRegistry``."""
    return MetricRegistry(CollectorRegistry())
