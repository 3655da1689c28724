# services/server_monitor.py
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Callable

from exceptions import UnsupportedLaunchArgument
from models.events import (
    CommandLine,
    ConnectionClose,
    JoinRequest,
    JoinSucceeded,
    LogEvent,
    LogFileOpen,
    LoginRequest,
)
from models.server import Database, ServerState
from services import registry
from services.purge import PurgeScheduler
from utils.config import Settings
from utils.db import save_database
from utils.formatting import format_list, format_minutes, get_timestamp, roster_line
from utils.log_parser import parse

log = logging.getLogger(__name__)

# these make the log timestamps local or drop them, which breaks event timing
UNSUPPORTED_ARG_RE = re.compile(r"^-(?:NoLogTimes|LocalLogTimes|LogTimeCode)$", re.IGNORECASE)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class ServerMonitor:
    """
    Owns the bot's Database and is its only writer. Log lines and poll cycles
    each mutate, notify and persist under one lock.
    """

    def __init__(
        self,
        settings: Settings,
        db: Database,
        notifier,
        probe,
        purger: PurgeScheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.db = db
        self.notifier = notifier
        self.probe = probe
        self.purger = purger
        self.clock = clock
        self.init_time: datetime | None = None
        self._lock = asyncio.Lock()

    # ---------- helpers

    def mark_ready(self) -> None:
        """Lines stamped before this moment are replayed history and stay silent."""
        self.init_time = self.clock()
        log.info("Init time: %s", self.init_time.isoformat())

    def should_notify(self, timestamp: datetime) -> bool:
        if self.init_time is None or timestamp < self.init_time:
            return False
        return self.settings.IGNORE_POLL_STATE_WHEN_MESSAGING or self.db.server.online

    async def _say(self, text: str) -> None:
        await self.notifier.send(self.settings.DISCORD_CHANNEL_NAME, text)

    async def _update_activity(self) -> None:
        if self.db.server.online:
            online = registry.online_players(self.db)
            await self.notifier.set_activity(f"{len(online)}/{self.settings.SERVER_MAX_PLAYERS} online")
        else:
            await self.notifier.set_activity("Offline")

    def _roster(self) -> str:
        return roster_line(
            registry.online_players(self.db),
            self.settings.SERVER_MAX_PLAYERS,
            get_timestamp(self.settings.DISPLAY_TIMEZONE),
        )

    def _save(self) -> None:
        save_database(self.settings.DB_PATH, self.db)

    def _update_server(self, **changes) -> None:
        server = self.db.server.model_copy(update=changes)
        self.db = self.db.model_copy(update={"server": server})

    # ---------- log events

    async def handle_line(self, line: str) -> None:
        event = parse(line)
        if event is None:
            return
        async with self._lock:
            await self.handle_event(event)
            self._save()

    async def handle_event(self, event: LogEvent) -> None:
        if isinstance(event, LogFileOpen):
            log.info("Log file open %s", event.date)
            self.db = registry.on_log_file_open(self.db)
        elif isinstance(event, CommandLine):
            self.check_command_line(event.raw)
        elif isinstance(event, LoginRequest):
            await self._on_login_request(event)
        elif isinstance(event, JoinRequest):
            log.info("Join request %s", event.name)
            self.db = registry.on_join_request(self.db, event.name, event.timestamp)
        elif isinstance(event, JoinSucceeded):
            await self._on_join_succeeded(event)
        elif isinstance(event, ConnectionClose):
            await self._on_connection_close(event)

    def check_command_line(self, raw: str) -> None:
        for arg in raw.split():
            if UNSUPPORTED_ARG_RE.match(arg):
                log.error("Unsupported command line argument '%s' detected. Aborting…", arg)
                raise UnsupportedLaunchArgument(arg)

    async def _on_login_request(self, event: LoginRequest) -> None:
        log.info("Login request %s %s", event.user_id, event.name)
        if registry.is_sentinel(event.user_id):
            if self.should_notify(event.timestamp):
                await self._say(
                    f":warning: **{event.name}** has a user ID of "
                    f"**{format_list(registry.SENTINEL_USER_IDS)}**. Their character inventory may be lost. "
                    "They should restart their game and reconnect…"
                )
            return
        self.db = registry.on_login_request(self.db, event.user_id, event.name, event.timestamp)

    async def _on_join_succeeded(self, event: JoinSucceeded) -> None:
        log.info("Join succeeded %s", event.name)
        self.db, joined = registry.on_join_succeeded(self.db, event.name, event.timestamp)
        if joined is None or not self.should_notify(event.timestamp):
            return
        await self._say(f"{self._roster()}\n    :arrow_right: **{event.name}** has joined the server.")
        if self.db.server.online:
            await self._update_activity()

    async def _on_connection_close(self, event: ConnectionClose) -> None:
        log.info("Connection close %s", event.user_id)
        if registry.is_sentinel(event.user_id):
            if self.should_notify(event.timestamp):
                await self._say(
                    f":information_source: A **{format_list(registry.SENTINEL_USER_IDS)}** connection was closed."
                )
            return
        self.db, departure = registry.on_connection_close(self.db, event.user_id, event.timestamp)
        if departure is None or not self.should_notify(event.timestamp):
            return
        await self._say(
            f"{self._roster()}\n    :arrow_left: **{departure.player.name}** has left the server "
            f"after playing for **{format_minutes(departure.minutes)}**."
        )
        if self.db.server.online:
            await self._update_activity()

    # ---------- polling

    async def poll(self) -> None:
        async with self._lock:
            await self._poll_server()
        if self.purger is not None:
            await self.purger.tick()

    async def _poll_server(self) -> None:
        previous: ServerState = self.db.server
        quiet = self.settings.DISABLE_UNREACHABLE_FOUND_MESSAGES
        try:
            status = await self.probe.query()
        except Exception as e:
            log.warning("[probe] server query failed: %s", e)
            await self.notifier.set_activity("Unknown")
            if not previous.unreachable:
                if not quiet:
                    await self._say(":man_shrugging: The server could not be reached.")
                self._update_server(unreachable=True, online=False)
            self._save()
            return

        if previous.unreachable and not quiet:
            await self._say(":thumbsup: The server has been found.")

        if status.online:
            if not previous.online:
                await self._say(":rocket: The server is back **online**!")
                await self._say(f":rocket: Server version: **{status.version}**")
        elif previous.online:
            await self._say(":tools: The server has gone **offline**.")

        self._update_server(version=status.version, online=status.online, unreachable=False)
        await self._update_activity()
        self._save()
