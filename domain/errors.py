from __future__ import annotations

from typing import Optional

from .models import Account


class CointipError(Exception):
    """Base class for all errors raised by the tipping core."""


class ValidationError(CointipError):
    """Malformed input, rejected before any call to the ledger."""


class LedgerError(CointipError):
    """A failed call to the ledger service."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class LedgerUnavailable(LedgerError):
    """The ledger could not be reached (connection error, timeout)."""


class LedgerRejected(LedgerError):
    """The ledger answered, but with a non-success status or a bad payload."""

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(operation, message)
        self.status_code = status_code


class PrimingRefreshError(LedgerError):
    """
    A new account was primed, but re-reading it afterwards failed.

    `account` holds the account as it was before priming so callers can
    still use it.
    """

    def __init__(self, account: Account, cause: LedgerError) -> None:
        super().__init__("get_account", f"refresh after priming failed: {cause}")
        self.account = account
        self.cause = cause


class PluginUnavailable(CointipError):
    """The plugin could not be set up and must not register any handlers."""
