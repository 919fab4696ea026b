from __future__ import annotations

import logging
from typing import Callable

import telebot

from application.plugin import CointipPlugin
from domain.models import CommandEvent, Reply

log = logging.getLogger(__name__)


def _command_text(text: str) -> str:
    """Strip the leading `/command` (and any `@botname`) from a message."""

    parts = (text or "").split(maxsplit=1)
    return parts[1] if len(parts) > 1 else ""


def _make_reply(bot: telebot.TeleBot, message) -> Callable[[Reply], None]:
    """
    Channel-wide replies go to the originating chat; private replies go to
    the user's own chat with the bot.
    """

    def reply(response: Reply) -> None:
        chat_id = message.chat.id if response.in_channel else message.from_user.id
        try:
            bot.send_message(chat_id, response.text)
        except telebot.apihelper.ApiException as exc:
            # Users who never opened a chat with the bot cannot be messaged
            # directly; fall back to the originating chat.
            log.warning("Failed to send private reply to %s: %s", chat_id, exc)
            if chat_id != message.chat.id:
                bot.send_message(message.chat.id, response.text)

    return reply


def _build_event(bot: telebot.TeleBot, message) -> CommandEvent:
    return CommandEvent(
        actor_key=str(message.from_user.id),
        text=_command_text(message.text),
        reply=_make_reply(bot, message),
    )


def create_telegram_bot(bot_token: str, plugin: CointipPlugin) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the cointip plugin.

    Only commands are supported: Telegram reaction updates do not say who
    wrote the reacted message, so there is no one to route a tip to.
    """

    bot = telebot.TeleBot(bot_token)

    @bot.message_handler(commands=["start", "help"])
    def handle_start(message):
        plugin.submit_command("cointip", CommandEvent(
            actor_key=str(message.from_user.id),
            text="help",
            reply=_make_reply(bot, message),
        ))

    @bot.message_handler(commands=["cointip"])
    def handle_cointip(message):
        plugin.submit_command("cointip", _build_event(bot, message))

    @bot.message_handler(commands=["btc", "eth"])
    def handle_price(message):
        name = message.text.split(maxsplit=1)[0][1:].split("@")[0].lower()
        plugin.submit_command(name, _build_event(bot, message))

    return bot
