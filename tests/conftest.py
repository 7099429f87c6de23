"""Pytest configuration and fixtures for embedded_sql tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from embedded_sql.adapters.outbound import FileImageStore, SQLiteEngine
from embedded_sql.application import Database
from embedded_sql.infrastructure.config import Config, EngineConfig, StorageConfig
from embedded_sql.infrastructure.container import Container, build_container, reset_container
from embedded_sql.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration with temporary directories."""
    return Config(
        storage=StorageConfig(
            image_dir=temp_dir / "images",
            file_prefix="testdb_",
        ),
        engine=EngineConfig(
            busy_timeout_seconds=0.5,
        ),
    )


@pytest.fixture
def container(test_config: Config) -> Generator[Container, None, None]:
    """Provide a fresh DI container for each test."""
    reset_container()
    c = build_container(test_config, registry=CollectorRegistry(auto_describe=True))
    yield c
    c.clear()


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def image_store(test_config: Config) -> FileImageStore:
    """Provide an image store writing into the test directory."""
    return FileImageStore(test_config.storage.image_dir, test_config.storage.file_prefix)


@pytest.fixture
def database(
    test_config: Config,
    image_store: FileImageStore,
    metrics_registry: MetricsRegistry,
) -> Generator[Database, None, None]:
    """Provide an open, empty database closed after the test."""
    db = Database(
        engine=SQLiteEngine(test_config.engine.busy_timeout_seconds),
        image_store=image_store,
        config=test_config,
        metrics=metrics_registry,
    )
    yield db
    if not db.closed:
        db.close()


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
