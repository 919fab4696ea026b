from __future__ import annotations

import argparse
import os
import sys
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional

from domain.errors import CointipError
from domain.models import CURRENCY_USD, Account, Transaction
from domain.repositories import LedgerClient
from infrastructure.ledger.coinbase_client import CoinbaseClient

VERSION = "0.0.1"


def format_account(account: Account) -> str:
    return (
        f"{account.id} {account.name} "
        f"{account.balance.currency}:{account.balance.amount:.8f} "
        f"{account.native_balance.currency}:{account.native_balance.amount:.2f}"
    )


def format_transaction(tx: Transaction) -> str:
    return (
        f"{tx.id} {tx.status} "
        f"{tx.amount.currency}:{tx.amount.amount:.8f} "
        f"{tx.native_amount.currency}:{tx.native_amount.amount:.2f}"
    )


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value!r}")


def _list_accounts(client: LedgerClient, args: argparse.Namespace) -> None:
    for account in client.list_accounts():
        print(format_account(account))


def _get_account(client: LedgerClient, args: argparse.Namespace) -> None:
    print(format_account(client.get_account(args.account_id)))


def _create_account(client: LedgerClient, args: argparse.Namespace) -> None:
    print(format_account(client.create_account(args.name)))


def _delete_account(client: LedgerClient, args: argparse.Namespace) -> None:
    client.delete_account(args.account_id)
    print(f"deleted account {args.account_id}")


def _create_address(client: LedgerClient, args: argparse.Namespace) -> None:
    print(client.create_address(args.account_id).address)


def _transfer(client: LedgerClient, args: argparse.Namespace) -> None:
    tx = client.transfer(args.from_id, args.to, args.amount, args.currency)
    print(format_transaction(tx))


def _withdraw(client: LedgerClient, args: argparse.Namespace) -> None:
    tx = client.withdraw(args.from_id, args.to, args.amount, args.currency)
    print(format_transaction(tx))


def _get_transaction(client: LedgerClient, args: argparse.Namespace) -> None:
    print(format_transaction(client.get_transaction(args.account_id, args.transaction_id)))


def _price(client: LedgerClient, args: argparse.Namespace) -> None:
    price = client.get_spot_price(args.base.upper(), args.quote.upper())
    print(f"{price.amount:.2f} {price.currency}")


def _add_movement_flags(parser: argparse.ArgumentParser, to_help: str) -> None:
    parser.add_argument("--from", dest="from_id", required=True, help="Account ID to transfer FROM")
    parser.add_argument("--to", required=True, help=to_help)
    parser.add_argument("--currency", required=True, help="Currency type to transfer")
    parser.add_argument("--amount", required=True, type=_decimal, help="Amount to transfer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cointip",
        description="Create accounts and move currency around via the Coinbase API.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--api-key",
        default=os.environ.get("COINBASE_KEY"),
        help="Coinbase API key (env: COINBASE_KEY).",
    )
    parser.add_argument(
        "--api-secret",
        default=os.environ.get("COINBASE_SECRET"),
        help="Coinbase API secret (env: COINBASE_SECRET).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list-accounts", help="List accounts").set_defaults(func=_list_accounts)

    p = sub.add_parser("get-account", help="Get account")
    p.add_argument("account_id")
    p.set_defaults(func=_get_account)

    p = sub.add_parser("create-account", help="Create account")
    p.add_argument("name")
    p.set_defaults(func=_create_account)

    p = sub.add_parser("delete-account", help="Delete account")
    p.add_argument("account_id")
    p.set_defaults(func=_delete_account)

    p = sub.add_parser("create-address", help="Create an address for receiving funds")
    p.add_argument("account_id")
    p.set_defaults(func=_create_address)

    p = sub.add_parser("transfer", help="Transfer funds between accounts")
    _add_movement_flags(p, "Account ID to transfer TO")
    p.set_defaults(func=_transfer)

    p = sub.add_parser("withdraw", help="Withdraw funds to a BTC address")
    _add_movement_flags(p, "BTC address to transfer TO")
    p.set_defaults(func=_withdraw)

    p = sub.add_parser("get-transaction", help="Show a transaction")
    p.add_argument("account_id")
    p.add_argument("transaction_id")
    p.set_defaults(func=_get_transaction)

    p = sub.add_parser("price", help="Show the spot price of a currency")
    p.add_argument("base")
    p.add_argument("--quote", default=CURRENCY_USD)
    p.set_defaults(func=_price)

    return parser


def main(
    argv: Optional[List[str]] = None,
    client_factory: Callable[[str, str], LedgerClient] = CoinbaseClient,
) -> int:
    args = build_parser().parse_args(argv)

    if not args.api_key:
        print("Error: missing required argument 'api-key'", file=sys.stderr)
        return 1
    if not args.api_secret:
        print("Error: missing required argument 'api-secret'", file=sys.stderr)
        return 1

    client = client_factory(args.api_key, args.api_secret)
    try:
        args.func(client, args)
    except CointipError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0
