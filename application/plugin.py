from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from application.account_cache import AccountCache
from application.dispatch import DispatchLoop
from application.priming import PrimingPolicy
from application.services import (
    DEFAULT_DENOMINATIONS,
    handle_command,
    handle_price,
    handle_tip,
)
from config import CointipSettings
from domain.errors import CointipError, PluginUnavailable
from domain.models import CURRENCY_BTC, CURRENCY_ETH, CommandEvent, Reply, TipEvent
from domain.repositories import LedgerClient

log = logging.getLogger(__name__)

# Price commands and the currency each one quotes.
PRICE_COMMANDS = {
    "btc": CURRENCY_BTC,
    "eth": CURRENCY_ETH,
}


def _deliver(event: CommandEvent, reply: Reply) -> None:
    if event.reply is None:
        log.warning("cointip: dropping reply for %s, no reply channel: %s", event.actor_key, reply.text)
        return
    event.reply(reply)


@dataclass
class CointipPlugin:
    """
    A fully set-up plugin: the shared account cache plus one dispatch loop
    per inbound source (each command, and reactions).
    """

    cache: AccountCache
    command_loops: Dict[str, DispatchLoop]
    reaction_loop: DispatchLoop
    stop_event: threading.Event = field(default_factory=threading.Event)

    @property
    def command_names(self) -> List[str]:
        return list(self.command_loops)

    def _loops(self) -> List[DispatchLoop]:
        return [*self.command_loops.values(), self.reaction_loop]

    def start(self) -> None:
        for loop in self._loops():
            loop.start()
        log.info("cointip: started %d dispatch loops", len(self._loops()))

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        for loop in self._loops():
            loop.join(timeout)

    def submit_command(self, name: str, event: CommandEvent) -> None:
        loop = self.command_loops.get(name)
        if loop is None:
            raise KeyError(f"unknown command: {name}")
        loop.submit(event)

    def submit_reaction(self, event: TipEvent) -> None:
        self.reaction_loop.submit(event)


def register_plugin(
    ledger: LedgerClient,
    settings: CointipSettings,
    stop_event: Optional[threading.Event] = None,
    denominations: Mapping[str, Decimal] = DEFAULT_DENOMINATIONS,
) -> CointipPlugin:
    """
    Set up the funding account and build the plugin's dispatch loops.

    The funding account is resolved through the cache, which also warms it.
    If that fails no handlers are built and `PluginUnavailable` is raised.
    Loops are returned unstarted; call `CointipPlugin.start()`.
    """

    stop_event = stop_event or threading.Event()
    priming = PrimingPolicy(
        ledger,
        amount=settings.priming_amount,
        currency=settings.priming_currency,
        enabled=settings.priming_enabled,
    )
    cache = AccountCache(ledger, priming, prefix=settings.account_prefix)

    try:
        if settings.funding_user_key:
            funding = cache.resolve(settings.funding_user_key)
            priming.funding_account = funding
            log.info(
                "cointip: starting plugin funding:%s (%s) %s total_accounts:%d",
                funding.name,
                funding.id,
                funding.balance_string(),
                len(cache.accounts()),
            )
        else:
            cache.prefetch()
            log.info(
                "cointip: starting plugin without a funding account, total_accounts:%d",
                len(cache.accounts()),
            )
    except CointipError as exc:
        log.error("cointip: failed to set up funding account, bailing: %s", exc)
        raise PluginUnavailable(f"funding account setup failed: {exc}") from exc

    def on_command(event: CommandEvent) -> None:
        reply = handle_command(
            event.actor_key,
            event.text,
            cache,
            ledger,
            refresh_before_deposit=settings.refresh_before_deposit,
        )
        _deliver(event, reply)

    def price_handler(currency: str):
        def on_price(event: CommandEvent) -> None:
            _deliver(event, handle_price(currency, ledger))

        return on_price

    def on_reaction(event: TipEvent) -> None:
        try:
            handle_tip(
                event,
                cache,
                ledger,
                denominations=denominations,
                currency=settings.tip_currency,
            )
        except CointipError as exc:
            log.error(
                "cointip: tip %s from:%s to:%s failed: %s",
                event.symbol,
                event.actor_key,
                event.target_key,
                exc,
            )

    command_loops = {"cointip": DispatchLoop("cointip", on_command, stop_event)}
    for name, currency in PRICE_COMMANDS.items():
        command_loops[name] = DispatchLoop(name, price_handler(currency), stop_event)

    return CointipPlugin(
        cache=cache,
        command_loops=command_loops,
        reaction_loop=DispatchLoop("reactions", on_reaction, stop_event),
        stop_event=stop_event,
    )
