from __future__ import annotations

import asyncio
import logging
from typing import Callable

import discord
from discord.ext import commands

from application.plugin import CointipPlugin
from domain.models import CommandEvent, Reply, TipEvent

log = logging.getLogger(__name__)


def _emoji_name(emoji) -> str:
    """Custom emoji (e.g. `:cointip_5:`) carry a name; unicode emoji are the string itself."""

    name = getattr(emoji, "name", None)
    return name if name else str(emoji)


def _make_reply(
    bot: commands.Bot,
    ctx: commands.Context,
) -> Callable[[Reply], None]:
    """
    Build a reply callback usable from a dispatch loop thread.

    Channel-wide replies go to the invoking channel; everything else is sent
    to the author as a direct message.
    """

    def reply(message: Reply) -> None:
        target = ctx.channel if message.in_channel else ctx.author
        future = asyncio.run_coroutine_threadsafe(target.send(message.text), bot.loop)
        future.add_done_callback(_log_send_failure)

    return reply


def _log_send_failure(future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        log.warning("Failed to deliver Discord reply: %s", exc)


def create_discord_bot(plugin: CointipPlugin) -> commands.Bot:
    """
    Configure and return a Discord bot wired to the cointip plugin.

    Commands and reactions are only translated into events here; the
    plugin's dispatch loops do the work and send replies back through the
    bot's event loop.
    """

    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.reactions = True

    # Disable the default help command; `!cointip help` replaces it.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    @bot.event
    async def on_ready():
        log.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.command(name="cointip")
    async def cointip_cmd(ctx: commands.Context, *, text: str = ""):
        """!cointip <balance|deposit|withdraw|help>"""

        plugin.submit_command(
            "cointip",
            CommandEvent(actor_key=str(ctx.author.id), text=text, reply=_make_reply(bot, ctx)),
        )

    @bot.command(name="btc")
    async def btc_cmd(ctx: commands.Context):
        plugin.submit_command(
            "btc",
            CommandEvent(actor_key=str(ctx.author.id), text="", reply=_make_reply(bot, ctx)),
        )

    @bot.command(name="eth")
    async def eth_cmd(ctx: commands.Context):
        plugin.submit_command(
            "eth",
            CommandEvent(actor_key=str(ctx.author.id), text="", reply=_make_reply(bot, ctx)),
        )

    @bot.event
    async def on_reaction_add(reaction: discord.Reaction, user: discord.abc.User):
        # Ignore bot reactions and reactions on bot messages.
        author = reaction.message.author
        if user.bot or author is None or author.bot:
            return

        plugin.submit_reaction(
            TipEvent(
                actor_key=str(user.id),
                target_key=str(author.id),
                symbol=_emoji_name(reaction.emoji),
            )
        )

    return bot
