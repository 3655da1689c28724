# main.py
from __future__ import annotations

import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI
from pydantic import ValidationError

import discord
import uvicorn

# silence PyNaCl warning (no voice support needed)
discord.VoiceClient.warn_nacl = False

# --- project utils
from api.status_router import router as status_router
from exceptions import FatalError, LogWatcherError
from services.notifier import Notifier
from services.presence_task import setup_presence_tasks
from services.purge import PurgeScheduler, attempt_purge
from services.server_monitor import ServerMonitor
from utils.config import Settings, get_settings
from utils.db import load_database
from utils.log_tailer import LogTailer
from utils.logging import configure_logging
from utils.query_client import ServerProbe

log = logging.getLogger("main")

READY_TIMEOUT_SECONDS = 30.0


def _mask_token(tok: str | None) -> str:
    if not tok:
        return "<empty>"
    if len(tok) <= 8:
        return "***"
    return tok[:4] + "…" + tok[-4:]


# ---------- discord bot
intents = discord.Intents.none()
intents.guilds = True
intents.guild_messages = True


class MonitorBot(discord.Client):
    async def setup_hook(self) -> None:
        log.info("[discord] setup_hook")


bot = MonitorBot(intents=intents)


# extra visibility on discord lifecycle
@bot.event
async def on_ready():
    guilds = [g.name for g in bot.guilds]
    log.info(
        "[discord] on_ready as %s (latency=%sms, guilds=%s)",
        bot.user,
        int(bot.latency * 1000) if bot.latency else "n/a",
        guilds,
    )


@bot.event
async def on_resumed():
    log.info("[discord] on_resumed")


@bot.event
async def on_disconnect():
    log.warning("[discord] on_disconnect")


# ---------- app
app = FastAPI(title="Satisfactory Server Monitor")
app.include_router(status_router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "discord_logged_in": bot.user is not None,
        "monitor": getattr(app.state, "monitor", None) is not None,
    }


async def _serve_http(settings: Settings) -> None:
    config = uvicorn.Config(
        app,
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        lifespan="off",
    )
    await uvicorn.Server(config).serve()


# ---------- lifecycle

def build_monitor(settings: Settings, client: discord.Client) -> ServerMonitor:
    notifier = Notifier(client)
    purge_cfg = settings.purge_config()

    async def purge_pass():
        channels = notifier.text_channels(purge_cfg.channel_name)
        return await attempt_purge(channels, purge_cfg, datetime.now(timezone.utc))

    return ServerMonitor(
        settings,
        load_database(settings.DB_PATH),
        notifier,
        ServerProbe(settings.SERVER_IP, settings.SERVER_PORT, settings.SERVER_QUERY_TIMEOUT_MS),
        purger=PurgeScheduler(purge_cfg, purge_pass),
    )


async def follow_log(tailer: LogTailer) -> int:
    """Run the log watcher until it stops and return the process exit code."""
    try:
        await tailer.watch()
    except FatalError as e:
        log.error("Stopping: %s", e)
        return e.exit_code
    except Exception:
        log.exception("Log watcher failed")
    return LogWatcherError.exit_code


async def run() -> int:
    try:
        settings = get_settings()
    except ValidationError as e:
        configure_logging("INFO")
        log.error("Invalid configuration (is DISCORD_TOKEN set?): %s", e)
        return 1

    configure_logging(settings.LOG_LEVEL)
    log.info("Starting up… pid=%s, py=%s", os.getpid(), sys.version.split()[0])
    log.info("Discord token present=%s (%s)", bool(settings.DISCORD_TOKEN), _mask_token(settings.DISCORD_TOKEN))
    log.info("Poll interval: %s minutes", settings.POLL_INTERVAL_MINUTES)

    monitor = build_monitor(settings, bot)
    app.state.monitor = monitor

    async with bot:
        try:
            await bot.login(settings.DISCORD_TOKEN)
        except discord.LoginFailure:
            log.exception("[discord] Login failed")
            return 1

        connect_task = asyncio.create_task(bot.connect(), name="discord")
        try:
            await asyncio.wait_for(bot.wait_until_ready(), timeout=READY_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            log.error("[discord] Not ready after %.0fs. Check token / gateway / intents / network.",
                      READY_TIMEOUT_SECONDS)
            return 1
        log.info("[discord] logged in as %s, %d guild(s)", bot.user, len(bot.guilds))

        monitor.mark_ready()
        await monitor.purger.start()
        app.state.tasks = background = [connect_task, setup_presence_tasks(bot, monitor, settings.poll_interval_seconds)]
        if settings.HTTP_PORT:
            background.append(asyncio.create_task(_serve_http(settings), name="http"))

        tailer = LogTailer(
            settings.LOG_LOCATION,
            monitor.handle_line,
            use_polling=settings.LOG_USE_POLLING,
            poll_interval=settings.LOG_POLL_INTERVAL_SECONDS,
            max_open_attempts=settings.LOG_OPEN_MAX_ATTEMPTS,
        )
        return await follow_log(tailer)


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
