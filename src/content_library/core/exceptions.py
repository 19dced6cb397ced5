"""
Custom exceptions for the content library engine.
"""


class ContentLibraryError(Exception):
    """Base exception class for content library errors"""

    def __init__(self, message: str, details: str = "") -> None:
        self.message = message
        self.details = details
        super().__init__(f"{message}\n\n{details}" if details else message)


class CatalogUnavailable(ContentLibraryError):
    """Raised when the pack index or a pack bundle cannot be fetched or parsed"""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message, details)


class EntryWriteFailed(ContentLibraryError):
    """Raised by a backing store when a single create or delete fails.

    The install and uninstall loops recover from this per entry and count it.
    """

    def __init__(self, message: str, details: str = "", *, entry_id: str | None = None) -> None:
        self.entry_id = entry_id
        super().__init__(message, details)


class NotInstalled(ContentLibraryError):
    """Raised when uninstalling a pack that has no ownership ledger record"""

    def __init__(self, pack_id: str) -> None:
        self.pack_id = pack_id
        super().__init__(f"Library '{pack_id}' is not installed")


class StoreUnavailable(ContentLibraryError):
    """Raised when a store call outside the per-entry loops fails"""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message, details)


class LedgerCorrupted(ContentLibraryError):
    """Raised when the ownership ledger file cannot be read"""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message, details)
