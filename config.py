from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import load_dotenv

from application.account_cache import DEFAULT_ACCOUNT_PREFIX
from application.priming import DEFAULT_PRIMING_AMOUNT
from domain.models import CURRENCY_USD
from infrastructure.ledger.coinbase_client import API_ENDPOINT

LOG_FORMAT = "%(asctime)s %(levelname)s :: %(message)s"


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CointipSettings:
    """Runtime configuration shared by every entry point."""

    api_key: str
    api_secret: str
    api_url: str = API_ENDPOINT
    funding_user_key: Optional[str] = None
    priming_enabled: bool = True
    priming_amount: Decimal = DEFAULT_PRIMING_AMOUNT
    priming_currency: str = CURRENCY_USD
    account_prefix: str = DEFAULT_ACCOUNT_PREFIX
    tip_currency: str = CURRENCY_USD
    refresh_before_deposit: bool = False
    debug: bool = False
    log_level: str = "INFO"


def load_settings(env: Optional[Mapping[str, str]] = None) -> CointipSettings:
    """
    Build settings from the environment (after loading `.env`).

    Raises `RuntimeError` when required values are missing or malformed.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    api_key = env.get("COINBASE_KEY")
    api_secret = env.get("COINBASE_SECRET")
    if not api_key or not api_secret:
        raise RuntimeError("COINBASE_KEY and COINBASE_SECRET environment variables must be set.")

    raw_amount = env.get("COINTIP_PRIMING_AMOUNT", str(DEFAULT_PRIMING_AMOUNT))
    try:
        priming_amount = Decimal(raw_amount)
    except InvalidOperation as exc:
        raise RuntimeError(f"COINTIP_PRIMING_AMOUNT is not a number: {raw_amount!r}") from exc

    return CointipSettings(
        api_key=api_key,
        api_secret=api_secret,
        api_url=env.get("COINBASE_API_URL", API_ENDPOINT),
        funding_user_key=env.get("COINTIP_FUNDING_KEY") or None,
        priming_enabled=_flag(env.get("COINTIP_PRIMING_ENABLED"), True),
        priming_amount=priming_amount,
        priming_currency=env.get("COINTIP_PRIMING_CURRENCY", CURRENCY_USD),
        account_prefix=env.get("COINTIP_ACCOUNT_PREFIX", DEFAULT_ACCOUNT_PREFIX),
        tip_currency=env.get("COINTIP_TIP_CURRENCY", CURRENCY_USD),
        refresh_before_deposit=_flag(env.get("COINTIP_REFRESH_BEFORE_DEPOSIT"), False),
        debug=_flag(env.get("COINTIP_DEBUG"), False),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
