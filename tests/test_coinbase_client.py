import hashlib
import hmac
import json
import unittest
from decimal import Decimal
from unittest import mock

import requests

from domain.errors import LedgerRejected, LedgerUnavailable, ValidationError
from infrastructure.ledger.coinbase_client import CoinbaseClient

ACCOUNT = {
    "id": "2bbf394c",
    "name": "cointip_alice",
    "currency": "BTC",
    "balance": {"amount": "0.00012345", "currency": "BTC"},
    "native_balance": {"amount": "3.21", "currency": "USD"},
}

TRANSACTION = {
    "id": "57ffb4ae",
    "type": "transfer",
    "status": "completed",
    "amount": {"amount": "-0.00000100", "currency": "BTC"},
    "native_amount": {"amount": "-0.05", "currency": "USD"},
    "description": "cointip transfer",
    "created_at": "2017-05-17T00:00:00Z",
    "updated_at": "2017-05-17T00:00:00Z",
}


def account_row(index, name):
    return dict(ACCOUNT, id=f"acct-{index}", name=name)


def account_pages(total, per_page=25):
    """Paged `/accounts` responses holding `cointip_u0` .. `cointip_u<total-1>`."""

    rows = [account_row(i, f"cointip_u{i}") for i in range(total)]
    pages = []
    for start in range(0, total, per_page):
        last = start + per_page >= total
        next_uri = None if last else f"/v2/accounts?starting_after=acct-{start + per_page - 1}"
        pages.append(
            fake_response(
                200,
                {"pagination": {"next_uri": next_uri}, "data": rows[start:start + per_page]},
            )
        )
    return pages


def fake_response(status_code, payload=None, text=None):
    response = mock.Mock()
    response.status_code = status_code
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    response.text = text
    response.content = text.encode()
    if payload is not None:
        response.json.return_value = payload
    else:
        response.json.side_effect = ValueError("no json")
    return response


class CoinbaseClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock(spec=requests.Session)
        self.client = CoinbaseClient("key", "secret", session=self.session)

    def respond(self, status_code, data=None, **kwargs):
        payload = {"data": data} if data is not None else kwargs.get("payload")
        self.session.request.return_value = fake_response(status_code, payload, kwargs.get("text"))

    def sent(self):
        args, kwargs = self.session.request.call_args
        return args[0], args[1], kwargs

    def test_list_accounts_decodes_envelope(self):
        self.respond(200, [ACCOUNT])

        accounts = self.client.list_accounts()

        self.assertEqual(len(accounts), 1)
        self.assertEqual(accounts[0].id, "2bbf394c")
        self.assertEqual(accounts[0].balance.amount, Decimal("0.00012345"))
        self.assertEqual(accounts[0].native_balance.amount, Decimal("3.21"))
        method, url, _ = self.sent()
        self.assertEqual((method, url), ("GET", "https://api.coinbase.com/v2/accounts"))

    def test_list_accounts_follows_pagination(self):
        self.session.request.side_effect = account_pages(30)

        accounts = self.client.list_accounts()

        self.assertEqual(len(accounts), 30)
        self.assertEqual(accounts[-1].name, "cointip_u29")
        urls = [c.args[1] for c in self.session.request.call_args_list]
        self.assertEqual(
            urls,
            [
                "https://api.coinbase.com/v2/accounts",
                "https://api.coinbase.com/v2/accounts?starting_after=acct-24",
            ],
        )

    def test_next_page_request_signs_query_string(self):
        self.session.request.side_effect = account_pages(30)

        with mock.patch("infrastructure.ledger.coinbase_client.time.time", return_value=1500000000):
            self.client.list_accounts()

        headers = self.session.request.call_args_list[1].kwargs["headers"]
        expected = hmac.new(
            b"secret",
            b"1500000000GET/v2/accounts?starting_after=acct-24",
            hashlib.sha256,
        ).hexdigest()
        self.assertEqual(headers["CB-ACCESS-SIGN"], expected)

    def test_failure_on_later_page_is_rejected(self):
        first, _ = account_pages(30)
        self.session.request.side_effect = [first, fake_response(500, {"errors": []})]

        with self.assertRaises(LedgerRejected):
            self.client.list_accounts()

    def test_requests_are_signed(self):
        self.respond(200, ACCOUNT)

        with mock.patch("infrastructure.ledger.coinbase_client.time.time", return_value=1500000000):
            self.client.get_account("2bbf394c")

        _, _, kwargs = self.sent()
        headers = kwargs["headers"]
        expected = hmac.new(
            b"secret",
            b"1500000000GET/v2/accounts/2bbf394c",
            hashlib.sha256,
        ).hexdigest()
        self.assertEqual(headers["CB-ACCESS-KEY"], "key")
        self.assertEqual(headers["CB-ACCESS-TIMESTAMP"], "1500000000")
        self.assertEqual(headers["CB-ACCESS-SIGN"], expected)
        self.assertEqual(headers["CB-VERSION"], "2017-05-17")
        self.assertEqual(kwargs["timeout"], 10.0)

    def test_create_account_posts_name(self):
        self.respond(201, ACCOUNT)

        account = self.client.create_account("cointip_alice")

        self.assertEqual(account.name, "cointip_alice")
        method, url, kwargs = self.sent()
        self.assertEqual(method, "POST")
        self.assertEqual(json.loads(kwargs["data"]), {"name": "cointip_alice"})

    def test_transfer_sends_formatted_amount(self):
        self.respond(201, TRANSACTION)

        tx = self.client.transfer("from-id", "to-id", Decimal("0.05"), "USD")

        self.assertEqual(tx.id, "57ffb4ae")
        self.assertEqual(tx.native_amount.amount, Decimal("-0.05"))
        _, url, kwargs = self.sent()
        self.assertTrue(url.endswith("accounts/from-id/transactions"))
        self.assertEqual(
            json.loads(kwargs["data"]),
            {
                "type": "transfer",
                "to": "to-id",
                "amount": "0.05000000",
                "currency": "USD",
                "description": "cointip transfer",
            },
        )

    def test_withdraw_uses_send_type(self):
        self.respond(201, TRANSACTION)

        self.client.withdraw("from-id", "1BitcoinAddress", Decimal("0.001"), "BTC")

        _, _, kwargs = self.sent()
        body = json.loads(kwargs["data"])
        self.assertEqual(body["type"], "send")
        self.assertEqual(body["description"], "cointip withdraw")

    def test_transfer_rejects_unsupported_currency_without_network(self):
        with self.assertRaises(ValidationError):
            self.client.transfer("a", "b", Decimal("1"), "DOGE")
        self.session.request.assert_not_called()

    def test_transfer_rejects_non_positive_amount(self):
        with self.assertRaises(ValidationError):
            self.client.transfer("a", "b", Decimal("0"), "USD")
        self.session.request.assert_not_called()

    def test_delete_account_expects_no_content(self):
        self.session.request.return_value = fake_response(204)

        self.client.delete_account("2bbf394c")

        method, _, _ = self.sent()
        self.assertEqual(method, "DELETE")

    def test_unexpected_status_is_rejected_with_ledger_message(self):
        self.respond(404, payload={"errors": [{"id": "not_found", "message": "Not found"}]})

        with self.assertRaises(LedgerRejected) as cm:
            self.client.get_account("missing")

        self.assertEqual(cm.exception.status_code, 404)
        self.assertEqual(cm.exception.operation, "get_account")
        self.assertIn("Not found", str(cm.exception))

    def test_malformed_body_is_rejected(self):
        self.respond(200, text="<html>oops</html>")

        with self.assertRaises(LedgerRejected):
            self.client.list_accounts()

    def test_missing_fields_are_rejected(self):
        self.respond(200, {"id": "x"})

        with self.assertRaises(LedgerRejected):
            self.client.get_account("x")

    def test_connection_errors_are_unavailable(self):
        self.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(LedgerUnavailable):
            self.client.list_accounts()

    def test_spot_price(self):
        self.respond(200, {"amount": "1650.50", "currency": "USD"})

        price = self.client.get_spot_price("ETH", "USD")

        self.assertEqual(price.amount, Decimal("1650.50"))
        _, url, _ = self.sent()
        self.assertTrue(url.endswith("prices/ETH-USD/spot"))

    def test_create_address(self):
        self.respond(201, {"id": "addr", "address": "1Deposit", "network": "bitcoin"})

        address = self.client.create_address("2bbf394c")

        self.assertEqual(address.address, "1Deposit")


if __name__ == "__main__":
    unittest.main()
