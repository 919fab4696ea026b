import logging
import os

from application.plugin import register_plugin
from config import LOG_FORMAT, load_settings
from domain.errors import PluginUnavailable
from infrastructure.ledger.coinbase_client import CoinbaseClient
from interfaces.discord.handlers import create_discord_bot


def main() -> None:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    discord_token = os.environ.get("DISCORD_TOKEN")
    if not discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

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

    bot = create_discord_bot(plugin)
    plugin.start()
    try:
        # log_handler=None keeps discord.py from replacing our logging setup.
        bot.run(discord_token, log_handler=None)
    finally:
        plugin.stop(timeout=5)


if __name__ == "__main__":
    main()
