from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from domain.models import Account
from domain.repositories import LedgerClient
from application.priming import PrimingPolicy

log = logging.getLogger(__name__)

DEFAULT_ACCOUNT_PREFIX = "cointip_"


class AccountCache:
    """
    In-process map from chat user key to that user's ledger account.

    Accounts are keyed by their derived name (``prefix + user_key``). The
    first miss lists every ledger account once to warm the map; later misses
    create the account and hand it to the priming policy.

    A single lock covers the whole find-or-create sequence so concurrent
    resolves of the same key create at most one account. This only holds
    within one process: another process creating accounts against the same
    ledger can still produce duplicates.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        priming: Optional[PrimingPolicy] = None,
        prefix: str = DEFAULT_ACCOUNT_PREFIX,
    ) -> None:
        self._ledger = ledger
        self._priming = priming
        self._prefix = prefix
        self._accounts: Dict[str, Account] = {}
        self._warmed = False
        self._lock = threading.Lock()

    def name_for(self, user_key: str) -> str:
        return f"{self._prefix}{user_key}"

    def accounts(self) -> List[Account]:
        """Snapshot of the accounts currently cached."""

        with self._lock:
            return list(self._accounts.values())

    def prefetch(self) -> None:
        """Warm the cache now instead of on the first miss."""

        with self._lock:
            self._warm()

    def _warm(self) -> None:
        if self._warmed:
            return
        log.info("cointip: listing accounts")
        accounts = self._ledger.list_accounts()
        for account in accounts:
            # Keep the first record for a name; later duplicates are ignored.
            self._accounts.setdefault(account.name, account)
        self._warmed = True
        log.info("cointip: found %d accounts", len(accounts))

    def _refresh(self, name: str, account: Account) -> Account:
        log.info("cointip: refreshing account %s (%s)", account.name, account.id)
        fresh = self._ledger.get_account(account.id)
        self._accounts[name] = fresh
        return fresh

    def resolve(self, user_key: str, refresh: bool = False) -> Account:
        """
        Return the account for `user_key`, creating it on first use.

        With `refresh` the account is re-read from the ledger before it is
        returned. Ledger failures propagate; a failed refresh leaves the
        previously cached record in place.
        """

        name = self.name_for(user_key)

        with self._lock:
            account = self._accounts.get(name)
            if account is None and not self._warmed:
                self._warm()
                account = self._accounts.get(name)

            if account is not None:
                if refresh:
                    return self._refresh(name, account)
                return account

            log.info("cointip: creating new account %s", name)
            account = self._ledger.create_account(name)
            self._accounts[name] = account
            log.info("cointip: created new account %s (%s)", account.name, account.id)

            refreshed = False
            if self._priming is not None:
                # PrimingRefreshError propagates; the unprimed record stays cached.
                primed = self._priming.prime(account)
                refreshed = primed is not account
                account = primed
                self._accounts[name] = account

            if refresh and not refreshed:
                return self._refresh(name, account)
            return account
