"""Data loading utilities."""

from .catalog_loader import load_sample_catalog, seed_sample_catalog

__all__ = ["load_sample_catalog", "seed_sample_catalog"]
