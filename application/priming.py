from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from domain.errors import CointipError, LedgerError, PrimingRefreshError
from domain.models import CURRENCY_USD, Account
from domain.repositories import LedgerClient

log = logging.getLogger(__name__)

DEFAULT_PRIMING_AMOUNT = Decimal("3.00")


class PrimingPolicy:
    """
    Seeds newly created accounts from a funding account.

    Priming is best effort: a failed seed transfer is logged and the new
    account is handed back unprimed. Only a failure to re-read the account
    after a successful transfer is reported, as `PrimingRefreshError`.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        funding_account: Optional[Account] = None,
        amount: Decimal = DEFAULT_PRIMING_AMOUNT,
        currency: str = CURRENCY_USD,
        enabled: bool = True,
    ) -> None:
        self._ledger = ledger
        self.funding_account = funding_account
        self.amount = amount
        self.currency = currency
        self.enabled = enabled

    def prime(self, account: Account) -> Account:
        funding = self.funding_account
        if not self.enabled:
            log.info("cointip: priming disabled, not priming %s (%s)", account.name, account.id)
            return account
        if funding is None:
            log.info("cointip: skipping account priming - funding account does not exist")
            return account
        if funding.id == account.id:
            return account

        try:
            tx = self._ledger.transfer(funding.id, account.id, self.amount, self.currency)
        except CointipError as exc:
            log.error(
                "cointip: failed to prime new account %s (%s) from funding account %s (%s): %s",
                account.name,
                account.id,
                funding.name,
                funding.id,
                exc,
            )
            return account

        log.info(
            "cointip: primed new account %s (%s) txid: %s - refreshing",
            account.name,
            account.id,
            tx.id,
        )
        try:
            return self._ledger.get_account(account.id)
        except LedgerError as exc:
            log.error(
                "cointip: failed refreshing %s (%s) after priming, returning non-refreshed account: %s",
                account.name,
                account.id,
                exc,
            )
            raise PrimingRefreshError(account, exc) from exc
