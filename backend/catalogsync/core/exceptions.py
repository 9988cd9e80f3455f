"""Core exceptions raised by services and mapped to HTTP errors by the API layer."""


class NotFoundException(Exception):
    """Raised when a requested row does not exist."""

    def __init__(self, message: str = "Not found"):
        """Create the exception with a human readable message."""
        self.message = message
        super().__init__(message)


class PlatformDisabledException(Exception):
    """Raised when a sync is requested for a platform that is switched off."""

    def __init__(self, platform: str):
        """Create the exception for ``platform``."""
        self.platform = platform
        super().__init__(f"Platform '{platform}' is disabled")


class SyncAlreadyRunningException(Exception):
    """Raised when a run for the same platform is already active."""

    def __init__(self, platform: str):
        """Create the exception for ``platform``."""
        self.platform = platform
        super().__init__(f"A sync for platform '{platform}' is already running")
