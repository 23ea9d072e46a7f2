"""Pytest configuration for integration tests."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from powerplan.data import seed_sample_catalog
from powerplan.db import init_db


def pytest_collection_modifyitems(items):
    """Mark everything under integration_tests/ so it can be deselected with -m."""
    for item in items:
        if "integration_tests" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def sample_db_path():
    """A database seeded with the bundled sample programs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"

        async def setup():
            await init_db(db_path)
            await seed_sample_catalog(db_path)

        asyncio.run(setup())
        yield db_path
