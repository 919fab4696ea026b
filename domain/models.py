from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

CURRENCY_USD = "USD"
CURRENCY_BTC = "BTC"
CURRENCY_ETH = "ETH"

# Currencies the ledger accepts for transfers and withdrawals.
SUPPORTED_CURRENCIES = frozenset({CURRENCY_USD, CURRENCY_BTC, CURRENCY_ETH})


@dataclass
class Balance:
    """An amount of a single currency, as reported by the ledger."""

    amount: Decimal
    currency: str

    def format(self, places: int = 8) -> str:
        return f"{self.currency}:{self.amount:.{places}f}"


@dataclass
class Account:
    """
    A ledger-held balance owned by one chat user (or by the funding entity).

    `balance` is denominated in the account's cryptocurrency and
    `native_balance` in the ledger user's native fiat currency.
    """

    id: str
    name: str
    currency: str
    balance: Balance
    native_balance: Balance

    def balance_string(self) -> str:
        return f"{self.native_balance.format(2)} {self.balance.format(8)}"


@dataclass
class Transaction:
    id: str
    type: str
    status: str
    amount: Balance
    native_amount: Balance
    description: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Address:
    """A receive address for depositing funds into an account."""

    id: str
    address: str
    name: str = ""
    network: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Price:
    amount: Decimal
    currency: str


@dataclass
class Reply:
    """
    Outbound text for the chat platform.

    `in_channel` replies are visible to the whole channel; everything else
    should only be shown to the user who issued the command.
    """

    text: str
    in_channel: bool = False


@dataclass
class TipEvent:
    """A reaction placed by `actor_key` on a message authored by `target_key`."""

    actor_key: str
    target_key: str
    symbol: str


@dataclass
class CommandEvent:
    """
    A command issued by `actor_key`.

    `text` is everything after the command name. `reply` is supplied by the
    transport and is called with the single reply produced for the event.
    """

    actor_key: str
    text: str
    reply: Optional[Callable[[Reply], None]] = None
