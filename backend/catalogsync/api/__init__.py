"""HTTP surface of the catalog sync service."""
