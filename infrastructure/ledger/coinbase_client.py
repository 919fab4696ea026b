from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import urljoin, urlsplit

import requests

from domain.errors import LedgerRejected, LedgerUnavailable, ValidationError
from domain.models import (
    SUPPORTED_CURRENCIES,
    Account,
    Address,
    Balance,
    Price,
    Transaction,
)
from domain.repositories import LedgerClient

log = logging.getLogger(__name__)

API_ENDPOINT = "https://api.coinbase.com/v2/"
API_VERSION = "2017-05-17"
USER_AGENT = "Cointip/v1"
DEFAULT_TIMEOUT = 10.0

T = TypeVar("T")


def _to_balance(data: Dict[str, Any]) -> Balance:
    return Balance(amount=Decimal(str(data["amount"])), currency=data["currency"])


def _to_account(data: Dict[str, Any]) -> Account:
    return Account(
        id=str(data["id"]),
        name=data.get("name", ""),
        currency=_currency_code(data.get("currency")),
        balance=_to_balance(data["balance"]),
        native_balance=_to_balance(data["native_balance"]),
    )


def _currency_code(value: Any) -> str:
    # Newer API versions return the currency as an object.
    if isinstance(value, dict):
        return value.get("code", "")
    return value or ""


def _to_transaction(data: Dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(data["id"]),
        type=data.get("type", ""),
        status=data.get("status", ""),
        amount=_to_balance(data["amount"]),
        native_amount=_to_balance(data["native_amount"]),
        description=data.get("description") or "",
        created_at=data.get("created_at", ""),
        updated_at=data.get("updated_at", ""),
    )


def _to_address(data: Dict[str, Any]) -> Address:
    return Address(
        id=str(data["id"]),
        address=data["address"],
        name=data.get("name") or "",
        network=data.get("network") or "",
        created_at=data.get("created_at", ""),
        updated_at=data.get("updated_at", ""),
    )


def _to_price(data: Dict[str, Any]) -> Price:
    return Price(amount=Decimal(str(data["amount"])), currency=data["currency"])


def _request_path(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}" if parts.query else parts.path


def _validate_amount(amount: Decimal, currency: str) -> None:
    if currency not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"invalid currency type: {currency}")
    if amount <= 0:
        raise ValidationError(f"amount must be greater than zero: {amount}")


class CoinbaseClient(LedgerClient):
    """
    `LedgerClient` backed by the Coinbase v2 REST API using API key auth.

    Every request is signed with HMAC-SHA256 over
    ``timestamp + METHOD + path + body``; responses are wrapped in a
    ``{"data": ...}`` envelope which is unpacked into domain models.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        endpoint: str = API_ENDPOINT,
        version: str = API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        debug: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self._version = version
        self._api_key = api_key
        self._api_secret = api_secret
        self._timeout = timeout
        self._debug = debug
        self._session = session or requests.Session()

    def _sign(self, timestamp: str, method: str, path: str, body: str) -> str:
        message = timestamp + method + path + body
        return hmac.new(
            self._api_secret.encode(),
            message.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _headers(self, method: str, url: str, body: str) -> Dict[str, str]:
        timestamp = str(int(time.time()))
        return {
            "CB-ACCESS-KEY": self._api_key,
            "CB-ACCESS-SIGN": self._sign(timestamp, method, _request_path(url), body),
            "CB-ACCESS-TIMESTAMP": timestamp,
            "CB-VERSION": self._version,
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
        }

    def request(
        self,
        operation: str,
        method: str,
        path: str,
        expected_status: int,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make an authenticated request and return the envelope's `data`."""

        payload = self._send(operation, method, self._endpoint + path, expected_status, params)
        return payload.get("data")

    def _send(
        self,
        operation: str,
        method: str,
        url: str,
        expected_status: int,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Make an authenticated request and return the whole response envelope.

        Raises `LedgerUnavailable` if the ledger cannot be reached and
        `LedgerRejected` for unexpected statuses or undecodable bodies.
        """

        body = json.dumps(params) if params is not None else ""
        headers = self._headers(method, url, body)

        if self._debug:
            log.debug("%s %s %s", method, url, body)

        try:
            response = self._session.request(
                method,
                url,
                data=body or None,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise LedgerUnavailable(operation, str(exc)) from exc

        if self._debug:
            log.debug("%s %s -> %s %s", method, url, response.status_code, response.text)

        payload: Dict[str, Any] = {}
        if response.content:
            try:
                payload = response.json()
            except ValueError as exc:
                raise LedgerRejected(
                    operation,
                    "malformed response body",
                    status_code=response.status_code,
                ) from exc

        if response.status_code != expected_status:
            raise LedgerRejected(
                operation,
                self._error_message(payload, response.status_code),
                status_code=response.status_code,
            )

        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def _error_message(payload: Any, status_code: int) -> str:
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            messages = [e.get("message", "") for e in errors if isinstance(e, dict)]
            return f"unexpected status code {status_code}: {'; '.join(messages)}"
        return f"unexpected status code {status_code}"

    @staticmethod
    def _decode(operation: str, data: Any, decoder: Callable[[Any], T]) -> T:
        try:
            return decoder(data)
        except (KeyError, TypeError, InvalidOperation) as exc:
            raise LedgerRejected(operation, f"malformed payload: {exc!r}") from exc

    def list_accounts(self) -> List[Account]:
        """Return every account, following `pagination.next_uri` across pages."""

        rows: List[Any] = []
        url: Optional[str] = self._endpoint + "accounts"
        while url:
            payload = self._send("list_accounts", "GET", url, 200)
            data = payload.get("data")
            if not isinstance(data, list):
                raise LedgerRejected("list_accounts", "malformed payload: data is not a list")
            rows.extend(data)
            next_uri = (payload.get("pagination") or {}).get("next_uri")
            # next_uri is an absolute path such as /v2/accounts?starting_after=...
            url = urljoin(self._endpoint, next_uri) if next_uri else None
        return self._decode(
            "list_accounts",
            rows,
            lambda rows: [_to_account(row) for row in rows],
        )

    def get_account(self, account_id: str) -> Account:
        data = self.request("get_account", "GET", f"accounts/{account_id}", 200)
        return self._decode("get_account", data, _to_account)

    def create_account(self, name: str) -> Account:
        data = self.request("create_account", "POST", "accounts", 201, {"name": name})
        return self._decode("create_account", data, _to_account)

    def delete_account(self, account_id: str) -> None:
        self.request("delete_account", "DELETE", f"accounts/{account_id}", 204)

    def create_address(self, account_id: str) -> Address:
        data = self.request(
            "create_address",
            "POST",
            f"accounts/{account_id}/addresses",
            201,
            {},
        )
        return self._decode("create_address", data, _to_address)

    def _create_transaction(
        self,
        operation: str,
        tx_type: str,
        description: str,
        from_id: str,
        to: str,
        amount: Decimal,
        currency: str,
    ) -> Transaction:
        _validate_amount(amount, currency)
        params = {
            "type": tx_type,
            "to": to,
            "amount": f"{amount:.8f}",
            "currency": currency,
            "description": description,
        }
        data = self.request(
            operation,
            "POST",
            f"accounts/{from_id}/transactions",
            201,
            params,
        )
        return self._decode(operation, data, _to_transaction)

    def transfer(
        self,
        from_id: str,
        to_id: str,
        amount: Decimal,
        currency: str,
    ) -> Transaction:
        return self._create_transaction(
            "transfer", "transfer", "cointip transfer", from_id, to_id, amount, currency
        )

    def withdraw(
        self,
        from_id: str,
        to_address: str,
        amount: Decimal,
        currency: str,
    ) -> Transaction:
        return self._create_transaction(
            "withdraw", "send", "cointip withdraw", from_id, to_address, amount, currency
        )

    def get_transaction(self, account_id: str, transaction_id: str) -> Transaction:
        data = self.request(
            "get_transaction",
            "GET",
            f"accounts/{account_id}/transactions/{transaction_id}",
            200,
        )
        return self._decode("get_transaction", data, _to_transaction)

    def get_spot_price(self, base_currency: str, quote_currency: str) -> Price:
        data = self.request(
            "get_spot_price",
            "GET",
            f"prices/{base_currency}-{quote_currency}/spot",
            200,
        )
        return self._decode("get_spot_price", data, _to_price)
