# services/presence_task.py
import asyncio
import logging

log = logging.getLogger(__name__)

def setup_presence_tasks(bot, monitor, interval_seconds: float) -> asyncio.Task:
    """Poll the server every ``interval_seconds``; each cycle finishes before the next sleep."""
    async def updater():
        await bot.wait_until_ready()
        while not bot.is_closed():
            try:
                await monitor.poll()
            except Exception:
                # keep polling; next tick will retry
                log.exception("[poll] cycle failed")
            await asyncio.sleep(interval_seconds)

    return asyncio.create_task(updater(), name="server-poll")
