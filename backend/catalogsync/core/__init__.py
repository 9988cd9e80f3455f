"""Core services: configuration, logging, audit recording, monitoring and scheduling."""
