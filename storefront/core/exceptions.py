"""
Error taxonomy for the storefront sync layer

Transport failures are recovered locally by the stores (cache fallback).
API and authorization failures propagate to the caller.
Storage failures are absorbed by the persistence adapter.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base class for all storefront errors"""


class NetworkError(StorefrontError):
    """The remote API could not be reached (timeout, DNS, connection reset)"""


class RemoteAPIError(StorefrontError):
    """The remote API answered with a non-success status"""

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        message = f"Storefront API returned {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AuthorizationError(RemoteAPIError):
    """Bearer token or admin secret was rejected (401/403)"""


class StorageError(StorefrontError):
    """Base class for local persistence failures"""


class StorageQuotaExceeded(StorageError):
    """The storage area has no room left for the value"""


class StorageUnavailable(StorageError):
    """Storage is disabled or the backing file cannot be used"""
