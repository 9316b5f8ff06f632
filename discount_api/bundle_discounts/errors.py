from typing import Any, Optional


class InvalidInputError(ValueError):
    """Raised for missing or malformed store / bundle identifiers and payloads."""

    def __init__(self, message: str, code: str = "INVALID_INPUT"):
        super().__init__(message)
        self.code = code


class BundleNotFoundError(LookupError):
    """Raised when a bundle does not exist for the store or was soft-deleted."""
    pass


class NoDiscountError(Exception):
    """The evaluated cart does not qualify for a coupon."""
    pass


class PlatformApiError(Exception):
    """A call to the commerce platform failed (network error or non-2xx)."""

    def __init__(self, status_code: int, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.details = details

    def __str__(self) -> str:
        return f"{self.args[0]} (status={self.status_code}, code={self.code})"
