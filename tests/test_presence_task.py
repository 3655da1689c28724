import asyncio

import pytest
from services.presence_task import setup_presence_tasks

pytestmark = pytest.mark.asyncio

class StubBot:
    def __init__(self):
        self._closed = False
    async def wait_until_ready(self): return
    def is_closed(self): return self._closed

class StubMonitor:
    def __init__(self, fail_first=False):
        self.polls = 0
        self.fail_first = fail_first
    async def poll(self):
        self.polls += 1
        if self.fail_first and self.polls == 1:
            raise RuntimeError("boom")

async def test_polls_repeatedly_until_closed():
    bot, monitor = StubBot(), StubMonitor()
    task = setup_presence_tasks(bot, monitor, 0.01)
    await asyncio.sleep(0.05)
    bot._closed = True
    await asyncio.wait_for(task, timeout=1)
    assert monitor.polls >= 2

async def test_failed_cycle_does_not_stop_polling():
    bot, monitor = StubBot(), StubMonitor(fail_first=True)
    task = setup_presence_tasks(bot, monitor, 0.01)
    await asyncio.sleep(0.05)
    bot._closed = True
    await asyncio.wait_for(task, timeout=1)
    assert monitor.polls >= 2
