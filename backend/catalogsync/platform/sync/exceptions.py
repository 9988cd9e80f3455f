"""Sync-specific exceptions for error handling."""


class EntityProcessingError(Exception):
    """Raised when an individual record cannot be reconciled.

    This is a recoverable error - the run continues with the next record.
    The record is logged and counted in the run's error tally.

    Examples:
    - Document references a product that does not exist
    - Existing category belongs to another platform
    - No free slug left for a name

    Usage:
        raise EntityProcessingError(f"Product {external_id} not found for document {url}")
    """

    pass


class SyncFailureError(Exception):
    """Raised when a critical error occurs that should fail the entire stage.

    This is a non-recoverable error - the stage is terminated immediately, its sync log
    is completed as FAILED and the error is re-raised to the caller.

    Examples:
    - Database connection lost
    - Database driver interface failure

    Usage:
        raise SyncFailureError("Database connection lost") from e
    """

    pass
