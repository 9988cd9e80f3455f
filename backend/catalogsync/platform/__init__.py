"""Catalog sync platform: source adapters, records and the reconciliation engine."""
