from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping, Optional

from application.account_cache import AccountCache
from domain.errors import CointipError
from domain.models import CURRENCY_USD, Reply, TipEvent, Transaction
from domain.repositories import LedgerClient

log = logging.getLogger(__name__)

# Reaction name -> tip amount, smallest to largest.
DEFAULT_DENOMINATIONS: Mapping[str, Decimal] = {
    "cointip_1": Decimal("0.01"),
    "cointip_2": Decimal("0.02"),
    "cointip_5": Decimal("0.05"),
    "cointip_10": Decimal("0.10"),
    "cointip_25": Decimal("0.25"),
}

HELP_TEXT = "cointip: Tip your friends!\nAvailable commands: help, balance, deposit, withdraw"
WITHDRAW_TEXT = "withdraw is not implemented yet, sorry!"


def _error_reply(exc: Exception, in_channel: bool = False) -> Reply:
    return Reply(text=f"Uh Oh. Something broke: {exc}", in_channel=in_channel)


def handle_tip(
    event: TipEvent,
    cache: AccountCache,
    ledger: LedgerClient,
    denominations: Mapping[str, Decimal] = DEFAULT_DENOMINATIONS,
    currency: str = CURRENCY_USD,
) -> Optional[Transaction]:
    """
    Turn a tip reaction into a transfer between the two users' accounts.

    Unknown reactions and self-tips are ignored and return None without
    touching the ledger. Ledger failures propagate to the caller; since the
    transfer is the only balance-changing call, a failure while resolving
    either account leaves both balances untouched.
    """

    amount = denominations.get(event.symbol)
    if amount is None:
        return None

    log.info(
        "cointip: got reaction %s from:%s to:%s",
        event.symbol,
        event.actor_key,
        event.target_key,
    )
    if event.actor_key == event.target_key:
        log.info("cointip: skipping tip - user is tipping themselves")
        return None

    sender = cache.resolve(event.actor_key)
    receiver = cache.resolve(event.target_key)

    tx = ledger.transfer(sender.id, receiver.id, amount, currency)
    log.info(
        "%s (%s) tipped %s (%s) %s txid: %s",
        sender.name,
        sender.id,
        receiver.name,
        receiver.id,
        tx.native_amount.format(2),
        tx.id,
    )
    return tx


def handle_command(
    actor_key: str,
    command_line: str,
    cache: AccountCache,
    ledger: LedgerClient,
    refresh_before_deposit: bool = False,
) -> Reply:
    """
    Handle `/cointip <command>` and return exactly one reply.

    - balance:  refresh the caller's account and report both balances.
    - deposit:  create a new receive address for the caller's account.
    - withdraw: not supported yet.
    - anything else shows the help text without calling the ledger.
    """

    parts = command_line.split()
    command = parts[0] if parts else ""
    log.info("cointip: got command %r from %s", command, actor_key)

    if command == "balance":
        try:
            account = cache.resolve(actor_key, refresh=True)
        except CointipError as exc:
            log.error("cointip: failed fetching account for %s: %s", actor_key, exc)
            return _error_reply(exc)
        return Reply(text=f"tipjar balance: {account.balance_string()}")

    if command == "deposit":
        try:
            account = cache.resolve(actor_key, refresh=refresh_before_deposit)
            address = ledger.create_address(account.id)
        except CointipError as exc:
            log.error("cointip: failed creating deposit address for %s: %s", actor_key, exc)
            return _error_reply(exc)
        return Reply(text=f"deposit address: {address.address}")

    if command == "withdraw":
        return Reply(text=WITHDRAW_TEXT)

    return Reply(text=HELP_TEXT)


def handle_price(
    base_currency: str,
    ledger: LedgerClient,
    quote_currency: str = CURRENCY_USD,
) -> Reply:
    """Report the spot price of `base_currency` to the whole channel."""

    try:
        price = ledger.get_spot_price(base_currency, quote_currency)
    except CointipError as exc:
        log.error("cointip: failed getting %s price: %s", base_currency, exc)
        return _error_reply(exc)

    return Reply(text=f"{price.amount:.2f} {price.currency}", in_channel=True)
