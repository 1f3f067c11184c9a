"""Domain errors raised by the catalog service.

Every failure that crosses the service boundary is one of these. Adapters
map them to transport codes: the REST layer uses ``status_code``, the
internal procedure interface turns them into ``success=False`` plus
``message``.
"""

from fastapi import status


class CatalogError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConnectivityError(CatalogError):
    """The store could not be reached, or begin/commit failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class OperationCancelledError(ConnectivityError):
    """The caller's deadline passed before the unit of work could commit."""


class NotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(CatalogError):
    status_code = status.HTTP_400_BAD_REQUEST


class OutOfStockError(ValidationError):
    def __init__(self, message: str = "Book is out of stock"):
        super().__init__(message)


class RepositoryError(CatalogError):
    """Constraint violations, malformed rows and other store failures."""


class CacheError(Exception):
    """Cache gateway failure. Never surfaced to callers of the service."""
