"""Exceptions raised by the Google Cloud service wrappers."""
import concurrent.futures

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError

# Failures coming out of the vendor SDKs that the wrappers re-tag.
# Job waits raise concurrent.futures.TimeoutError, which is not TimeoutError before 3.11.
SDK_ERRORS = (
    GoogleAPIError,
    GoogleAuthError,
    TimeoutError,
    concurrent.futures.TimeoutError,
    OSError,
    ValueError,
)


class GCPServiceError(Exception):
    """Base exception for all wrapper errors.

    ``message`` is a stable tag naming the failed operation, ``cause`` the
    underlying SDK error (also chained as ``__cause__``).
    """

    def __init__(self, message: str, cause: BaseException = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self):
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ClientInitError(GCPServiceError):
    """The SDK client could not authenticate or connect."""


class ListError(GCPServiceError):
    """Listing projects, datasets, tables, buckets, files or families failed."""


class WriteError(GCPServiceError):
    """Create, delete, insert, upload or copy failed."""


class ReadError(GCPServiceError):
    """Reading rows or objects failed."""


class QueryError(GCPServiceError):
    """Query execution, dry run or row processing failed."""


class ExportError(GCPServiceError):
    """Exporting a query result to Storage failed."""


class TemporaryTableNotFoundError(ExportError):
    """The query job did not expose a materialized destination table."""
