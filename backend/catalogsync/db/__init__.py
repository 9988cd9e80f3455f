"""Database access: engine, sessions and unit of work."""
