import pytest

from utils.config import Settings

class StubNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.activities: list[str] = []

    async def send(self, channel_name, text):
        if text:
            self.sent.append((channel_name, text))

    async def set_activity(self, text):
        self.activities.append(text)

    def text_channels(self, name):
        return []

class StubProbe:
    """Returns (or raises) the queued results in order; repeats the last one."""
    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def query(self):
        self.calls += 1
        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        values = dict(
            DISCORD_TOKEN="test-token",
            DISCORD_CHANNEL_NAME="satisfactory",
            SERVER_MAX_PLAYERS=4,
            DB_PATH=str(tmp_path / "db.json"),
            LOG_LOCATION=str(tmp_path / "FactoryGame.log"),
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make

@pytest.fixture
def stub_notifier():
    return StubNotifier()

@pytest.fixture
def make_probe():
    return StubProbe
