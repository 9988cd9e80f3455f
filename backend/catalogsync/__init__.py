"""Multi-source product catalog reconciliation service."""
