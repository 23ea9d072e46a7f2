"""Bundled sample catalog."""

import json
from pathlib import Path

from ..db.repositories import CatalogRepository
from ..models.catalog import Catalog


def get_sample_catalog_path() -> Path:
    """Get the path to the bundled sample catalog JSON file."""
    return Path(__file__).parent / "sample_catalog.json"


def load_sample_catalog() -> Catalog:
    """Load the sample catalog (5/3/1, GZCLP and Texas Method)."""
    with open(get_sample_catalog_path()) as f:
        return Catalog.from_dict(json.load(f))


async def seed_sample_catalog(db_path: Path | None = None) -> int:
    """Store the sample catalog, replacing any stored catalog.

    Returns:
        Number of catalog entries written
    """
    return await CatalogRepository(db_path).save(load_sample_catalog())
