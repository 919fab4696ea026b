import logging
import os
import sys

from dotenv import load_dotenv

from config import LOG_FORMAT
from infrastructure.ledger.coinbase_client import API_ENDPOINT, CoinbaseClient
from interfaces.cli.commands import main as cli


load_dotenv()


def main() -> None:
    debug = os.environ.get("COINTIP_DEBUG") == "1"
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING, format=LOG_FORMAT)

    def client_factory(api_key: str, api_secret: str) -> CoinbaseClient:
        return CoinbaseClient(
            api_key,
            api_secret,
            endpoint=os.environ.get("COINBASE_API_URL", API_ENDPOINT),
            debug=debug,
        )

    sys.exit(cli(client_factory=client_factory))


if __name__ == "__main__":
    main()
