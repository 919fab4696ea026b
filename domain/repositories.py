from __future__ import annotations

from decimal import Decimal
from typing import List, Protocol

from .models import Account, Address, Price, Transaction


class LedgerClient(Protocol):
    """
    Abstraction over the external ledger service.

    Implementations are responsible for:
    - Authenticating and encoding requests.
    - Mapping ledger payloads to the domain models.
    - Raising `LedgerUnavailable` / `LedgerRejected` on failure, and
      `ValidationError` for input they refuse to send.
    """

    def list_accounts(self) -> List[Account]:
        """Return every account the credentials can see."""

        ...

    def get_account(self, account_id: str) -> Account:
        ...

    def create_account(self, name: str) -> Account:
        ...

    def delete_account(self, account_id: str) -> None:
        ...

    def create_address(self, account_id: str) -> Address:
        """Create a new receive address for depositing into the account."""

        ...

    def transfer(
        self,
        from_id: str,
        to_id: str,
        amount: Decimal,
        currency: str,
    ) -> Transaction:
        """
        Move funds between two ledger accounts.

        Unsupported currencies are rejected before any network call.
        """

        ...

    def withdraw(
        self,
        from_id: str,
        to_address: str,
        amount: Decimal,
        currency: str,
    ) -> Transaction:
        """Send funds from an account to an external address."""

        ...

    def get_transaction(self, account_id: str, transaction_id: str) -> Transaction:
        ...

    def get_spot_price(self, base_currency: str, quote_currency: str) -> Price:
        ...
