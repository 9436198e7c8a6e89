"""Tests for the status fetcher."""

import json

import pytest

from assetcache_exporter.status import (
    DEFAULT_STATUS_COMMAND,
    DecodeError,
    FetchError,
    ProcessError,
    SchemaError,
    StatusFetcher,
)
from tests.helpers import python_command, status_command


def test_default_command():
    """Test the fetcher asks the status tool for JSON output."""
    fetcher = StatusFetcher()
    assert fetcher.command == list(DEFAULT_STATUS_COMMAND)
    assert fetcher.command[-1] == "--json"


def test_fetch_returns_result_object(status_result):
    """Test a successful run yields the decoded result object."""
    snapshot = StatusFetcher(status_command(status_result)).fetch()

    assert snapshot["CacheLimit"] == 1000
    assert snapshot["ServerGUID"] == "abc"
    assert snapshot["CacheDetails"]["iCloud"] == 100


def test_snapshot_is_read_only(status_result):
    """Test snapshots cannot be mutated, including nested objects."""
    snapshot = StatusFetcher.parse(json.dumps({"result": status_result}))

    with pytest.raises(TypeError):
        snapshot["CacheLimit"] = 0
    with pytest.raises(TypeError):
        snapshot["CacheDetails"]["iCloud"] = 0


def test_non_zero_exit_raises_process_error():
    """Test a failing status tool surfaces its stderr."""
    fetcher = StatusFetcher(python_command(stderr="caching service is not running", exit_code=3))

    with pytest.raises(ProcessError) as excinfo:
        fetcher.fetch()

    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == "caching service is not running"
    assert isinstance(excinfo.value, FetchError)


def test_missing_executable_raises_process_error():
    """Test a status tool that cannot be launched."""
    fetcher = StatusFetcher(["/nonexistent/AssetCacheManagerUtil", "status", "--json"])

    with pytest.raises(ProcessError):
        fetcher.fetch()


def test_timeout_raises_process_error():
    """Test a hung status tool is abandoned after the timeout."""
    fetcher = StatusFetcher(python_command(stdout="{}", delay=5), timeout=0.5)

    with pytest.raises(ProcessError):
        fetcher.fetch()


@pytest.mark.parametrize("stdout", ["", "not json", '{"result": '])
def test_malformed_output_raises_decode_error(stdout):
    """Test unparseable output."""
    with pytest.raises(DecodeError):
        StatusFetcher(python_command(stdout=stdout)).fetch()


@pytest.mark.parametrize("document", [
    {"name": "status"},
    {"result": None},
    {"result": [1, 2, 3]},
    [{"result": {}}],
    "result",
])
def test_missing_result_raises_schema_error(document):
    """Test documents without a result object."""
    with pytest.raises(SchemaError):
        StatusFetcher.parse(json.dumps(document))


def test_empty_command_rejected():
    """Test the fetcher needs something to run."""
    with pytest.raises(ValueError):
        StatusFetcher([])
