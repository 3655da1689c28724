# services/notifier.py
from __future__ import annotations

import logging

import discord

from utils.permissions import can_send

log = logging.getLogger(__name__)

class Notifier:
    """Posts to every text channel with a given name, across all guilds the bot is in."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    def text_channels(self, name: str) -> list[discord.TextChannel]:
        return [ch for g in self.bot.guilds for ch in g.text_channels if ch.name == name]

    async def send(self, channel_name: str, text: str) -> None:
        if not text:
            return
        channels = self.text_channels(channel_name)
        if not channels:
            log.warning("[discord] channel not found: #%s", channel_name)
            return
        for ch in channels:
            if not can_send(ch):
                log.warning("[discord] no permission to send in %s > #%s", ch.guild.name, ch.name)
                continue
            try:
                await ch.send(text)
            except Exception as e:
                log.warning("[discord] send to %s > #%s failed: %s", ch.guild.name, ch.name, e)

    async def set_activity(self, text: str) -> None:
        if self.bot.user is None:
            return
        try:
            await self.bot.change_presence(activity=discord.Game(name=text))
        except Exception as e:
            log.debug("[discord] change_presence failed: %s", e)
