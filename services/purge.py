# services/purge.py
from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Awaitable, Callable, Iterable, Sequence
from zoneinfo import ZoneInfo

import discord

from models.server import PurgeConfig
from utils.permissions import can_purge

log = logging.getLogger(__name__)

PAGE_SIZE = 100

def will_purge(cfg: PurgeConfig) -> bool:
    return cfg.after_days >= 0 or cfg.after_lines >= 0

def get_next_purge(hour: int = 2, now: datetime | None = None) -> datetime:
    """
    Upcoming local midnight plus ``hour`` hours, as wall-clock time.

    With a ``ZoneInfo`` the result stays in that zone. Otherwise the system
    zone is used, so the UTC offset is the one in force on the due date.
    """
    now = now or datetime.now().astimezone()
    if isinstance(now.tzinfo, ZoneInfo):
        return datetime.combine(now.date() + timedelta(days=1), time(hour), tzinfo=now.tzinfo)
    local = now.astimezone().replace(tzinfo=None)
    return datetime.combine(local.date() + timedelta(days=1), time(hour)).astimezone()

def select_messages_to_purge(messages: Iterable, now: datetime, after_days: int, after_lines: int) -> list:
    """
    Pick the messages to delete. Messages are ranked newest first; one qualifies
    when its rank is at least ``after_lines`` or it is older than ``after_days``.
    A negative threshold never matches.
    """
    newest_first = sorted(messages, key=lambda m: m.created_at, reverse=True)
    cutoff = now - timedelta(days=after_days) if after_days >= 0 else None
    victims = []
    for rank, message in enumerate(newest_first):
        if after_lines >= 0 and rank >= after_lines:
            victims.append(message)
        elif cutoff is not None and message.created_at < cutoff:
            victims.append(message)
    return victims

async def fetch_all_messages(channel: discord.TextChannel, page_size: int = PAGE_SIZE) -> list[discord.Message]:
    messages: list[discord.Message] = []
    before = None
    while True:
        page = [m async for m in channel.history(limit=page_size, before=before)]
        if not page:
            break
        messages.extend(page)
        before = page[-1]
    return messages

async def purge_channel(channel: discord.TextChannel, cfg: PurgeConfig, now: datetime) -> int:
    guild_name = channel.guild.name
    allowed, missing = can_purge(channel)
    if not allowed:
        log.warning("[purge] missing %s permission in %s > #%s; skipping", missing, guild_name, channel.name)
        return 0

    me_id = channel.guild.me.id
    messages = await fetch_all_messages(channel)
    own = [m for m in messages if m.author.bot and m.author.id == me_id]
    victims = select_messages_to_purge(own, now, cfg.after_days, cfg.after_lines)
    if not victims:
        return 0

    log.info("[purge] %s: deleting %d of %d bot messages…", guild_name, len(victims), len(own))
    deleted = 0
    for message in victims:
        try:
            await message.delete()
            deleted += 1
        except Exception as e:
            log.warning("[purge] failed to delete message %s: %s", message.id, e)
    return deleted

async def attempt_purge(channels: Sequence[discord.TextChannel], cfg: PurgeConfig, now: datetime) -> int:
    if not channels:
        log.warning("[purge] channel not found: #%s", cfg.channel_name)
        return 0
    total = 0
    for ch in channels:
        try:
            total += await purge_channel(ch, cfg, now)
        except Exception:
            log.exception("[purge] pass failed for %s > #%s", ch.guild.name, ch.name)
    return total

class PurgeScheduler:
    """Runs one purge pass per day at ``cfg.hour``. Missed days are not caught up."""

    def __init__(
        self,
        cfg: PurgeConfig,
        run_pass: Callable[[], Awaitable[object]],
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ):
        self.cfg = cfg
        self.run_pass = run_pass
        self.clock = clock
        self.next_due: datetime | None = None

    @property
    def enabled(self) -> bool:
        return will_purge(self.cfg)

    async def start(self) -> None:
        if not self.enabled:
            log.info("[purge] disabled")
            return
        if self.cfg.on_startup:
            log.info("[purge] running startup pass")
            try:
                await self.run_pass()
            except Exception:
                log.exception("[purge] startup pass failed")
        self.next_due = get_next_purge(self.cfg.hour, self.clock())
        log.info("[purge] next purge will be %s", self.next_due.isoformat())

    async def tick(self) -> bool:
        if not self.enabled or self.next_due is None:
            return False
        now = self.clock()
        if now < self.next_due:
            return False
        self.next_due = get_next_purge(self.cfg.hour, now)
        log.info("[purge] looking for messages to purge…")
        try:
            await self.run_pass()
        except Exception:
            log.exception("[purge] pass failed")
        log.info("[purge] next purge will be %s", self.next_due.isoformat())
        return True
