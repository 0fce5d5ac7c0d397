"""Pytest configuration and fixtures."""

import os

import pytest

# Keep settings away from a developer's .env
os.environ.setdefault("ACRES_STORAGE_BACKEND", "memory")

from acres_collector.config import Settings
from acres_collector.services.correlation import CorrelationEngine
from acres_collector.services.crop_resolver import CropResolver
from acres_collector.services.persistence import MemoryGateway
from acres_collector.services.request_tracker import CropRequestTracker
from acres_collector.services.stores import CropProfileStore, PropertyStore

from factories import FakeFetcher, RecordingSleep


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest.fixture
def engine(gateway):
    return CorrelationEngine(PropertyStore(), CropProfileStore(), gateway)


@pytest.fixture
def tracker():
    return CropRequestTracker()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def resolver(tracker, engine, fetcher, sleep):
    return CropResolver(tracker, engine, fetcher, max_retries=3, retry_delay=5.0, sleep=sleep)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        STORAGE_BACKEND="file",
        STORAGE_PATH=tmp_path / "snapshot.json",
        EXPORT_DIR=tmp_path / "exports",
        RETRY_DELAY_SECONDS=0.0,
        AUTOMATION_INTERVAL_SECONDS=60.0,
    )
