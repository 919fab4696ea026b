import logging
import os

from application.plugin import register_plugin
from config import LOG_FORMAT, load_settings
from domain.errors import PluginUnavailable
from infrastructure.ledger.coinbase_client import CoinbaseClient
from interfaces.telegram.handlers import create_telegram_bot


def main() -> None:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    telegram_token = os.environ.get("TELEGRAM_TOKEN")
    if not telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    ledger = CoinbaseClient(
        settings.api_key,
        settings.api_secret,
        endpoint=settings.api_url,
        debug=settings.debug,
    )
    try:
        plugin = register_plugin(ledger, settings)
    except PluginUnavailable as exc:
        raise SystemExit(f"cointip is unavailable: {exc}")

    bot = create_telegram_bot(telegram_token, plugin)
    plugin.start()
    try:
        bot.infinity_polling()
    finally:
        plugin.stop(timeout=5)


if __name__ == "__main__":
    main()
