import json
from datetime import datetime, timezone

import pytest

from exceptions import ProbeError, UnsupportedLaunchArgument
from models.server import Database, ServerState
from services.server_monitor import ServerMonitor
from utils.log_tailer import LogTailer
from utils.query_client import ServerStatus

pytestmark = pytest.mark.asyncio

INIT = datetime(2024, 10, 18, 12, 30, tzinfo=timezone.utc)

HISTORY = "\n".join([
    "Log file open, 10/18/24 12:00:00",
    "LogInit: Command Line:  -log -unattended",
    "[2024.10.18-12.00.01:000][ 10]LogNet: Login request: ?EncryptionToken=?Name=Alice userId: 42 platform: Steam",
    "[2024.10.18-12.00.02:000][ 11]LogNet: Join request: /Game/FactoryGame/Map/GameLevel01/Persistent_Level?Name=Alice?SplitscreenCount=1",
    "[2024.10.18-12.00.03:000][ 12]LogNet: Join succeeded: Alice",
]) + "\n"

CLOSE_42 = ("[2024.10.18-12.45.03:000][900]LogNet: UNetConnection::Close: [UNetConnection] RemoteAddr: "
            "203.0.113.5:7777, Name: IpConnection_1, Driver: GameNetDriver IpNetDriver_1, IsServer: YES, "
            "UniqueId: 42, Channels: 19\n")

class StubPurger:
    def __init__(self):
        self.ticks = 0

    async def tick(self):
        self.ticks += 1
        return False

@pytest.fixture
def monitor(make_settings, stub_notifier, make_probe):
    def _make(db=None, probe=None, **settings):
        m = ServerMonitor(
            make_settings(**settings),
            db or Database(),
            stub_notifier,
            probe or make_probe(ServerStatus("Playing", 365306)),
            purger=StubPurger(),
            clock=lambda: INIT,
        )
        m.mark_ready()
        return m
    return _make

def _texts(notifier):
    return [text for _, text in notifier.sent]

# ---------- log handling

async def test_history_is_silent_and_live_leave_is_announced(monitor, stub_notifier, tmp_path):
    m = monitor(db=Database(server=ServerState(online=True)))
    path = tmp_path / "FactoryGame.log"
    path.write_text(HISTORY)
    tailer = LogTailer(str(path), m.handle_line)
    await tailer.open()
    await tailer.read_new_lines()

    alice = m.db.players["42"]
    assert alice.joined_count == 1
    assert stub_notifier.sent == []

    with open(path, "a") as f:
        f.write(CLOSE_42)
    await tailer.read_new_lines()

    assert "42" not in m.db.players
    [(channel, text)] = stub_notifier.sent
    assert channel == "satisfactory"
    assert "**Alice** has left the server after playing for **45 minutes**" in text
    assert json.loads(path.with_name("db.json").read_text())["players"] == {}

async def test_live_join_is_announced_with_roster(monitor, stub_notifier):
    m = monitor(db=Database(server=ServerState(online=True)))
    await m.handle_line("[2024.10.18-12.31.00:000][1]LogNet: Login request: ?Name=Bob userId: 7 platform: Steam")
    await m.handle_line("[2024.10.18-12.31.01:000][2]LogNet: Join request: /Game/Map?Name=Bob?SplitscreenCount=1")
    await m.handle_line("[2024.10.18-12.31.02:000][3]LogNet: Join succeeded: Bob")

    [text] = _texts(stub_notifier)
    assert ":astronaut: **1**/4 online: **Bob**" in text
    assert ":arrow_right: **Bob** has joined the server." in text
    assert stub_notifier.activities == ["1/4 online"]

async def test_live_events_are_quiet_while_server_offline(monitor, stub_notifier):
    m = monitor()
    await m.handle_line("[2024.10.18-12.31.00:000][1]LogNet: Login request: ?Name=Bob userId: 7 platform: Steam")
    await m.handle_line("[2024.10.18-12.31.01:000][2]LogNet: Join request: /Game/Map?Name=Bob")
    await m.handle_line("[2024.10.18-12.31.02:000][3]LogNet: Join succeeded: Bob")
    assert stub_notifier.sent == []
    assert m.db.players["7"].joined_count == 1

async def test_ignore_poll_state_allows_messages_while_offline(monitor, stub_notifier):
    m = monitor(IGNORE_POLL_STATE_WHEN_MESSAGING=True)
    await m.handle_line("[2024.10.18-12.31.00:000][1]LogNet: Login request: ?Name=Bob userId: 7 platform: Steam")
    await m.handle_line("[2024.10.18-12.31.01:000][2]LogNet: Join request: /Game/Map?Name=Bob")
    await m.handle_line("[2024.10.18-12.31.02:000][3]LogNet: Join succeeded: Bob")
    assert len(stub_notifier.sent) == 1
    assert stub_notifier.activities == []

async def test_sentinel_ids_warn_without_tracking(monitor, stub_notifier):
    m = monitor(db=Database(server=ServerState(online=True)))
    await m.handle_line("[2024.10.18-12.31.00:000][1]LogNet: Login request: ?Name=Eve userId: INVALID platform: Steam")
    await m.handle_line("[2024.10.18-12.32.00:000][1]LogNet: UNetConnection::Close: x, UniqueId: UNKNOWN, Channels: 1")
    assert m.db.players == {}
    warning, info = _texts(stub_notifier)
    assert warning.startswith(":warning: **Eve** has a user ID of **INVALID or UNKNOWN**")
    assert info.startswith(":information_source:")

async def test_historic_sentinel_login_is_silent(monitor, stub_notifier):
    m = monitor(db=Database(server=ServerState(online=True)))
    await m.handle_line("[2024.10.18-11.00.00:000][1]LogNet: Login request: ?Name=Eve userId: INVALID platform: Steam")
    assert stub_notifier.sent == []

async def test_log_file_open_resets_players(monitor):
    m = monitor()
    await m.handle_line("[2024.10.18-12.31.00:000][1]LogNet: Login request: ?Name=Bob userId: 7 platform: Steam")
    assert m.db.players
    await m.handle_line("Log file open, 10/18/24 12:40:00")
    assert m.db.players == {}

async def test_unsupported_launch_argument_aborts(monitor):
    m = monitor()
    await m.handle_line("LogInit: Command Line: -log -unattended")
    with pytest.raises(UnsupportedLaunchArgument) as exc:
        await m.handle_line("LogInit: Command Line: -log -localLogTimes")
    assert exc.value.exit_code == 2

# ---------- polling

async def test_coming_online_is_announced_once(monitor, stub_notifier, make_probe):
    m = monitor(probe=make_probe(ServerStatus("Playing", 365306)))
    await m.poll()
    await m.poll()
    assert _texts(stub_notifier) == [
        ":rocket: The server is back **online**!",
        ":rocket: Server version: **365306**",
    ]
    assert m.db.server == ServerState(online=True, unreachable=False, version=365306)
    assert stub_notifier.activities[-1] == "0/4 online"
    assert m.purger.ticks == 2

async def test_going_offline_is_announced(monitor, stub_notifier, make_probe):
    m = monitor(db=Database(server=ServerState(online=True)), probe=make_probe(ServerStatus("Idle", 1)))
    await m.poll()
    assert _texts(stub_notifier) == [":tools: The server has gone **offline**."]
    assert stub_notifier.activities == ["Offline"]
    assert m.db.server.online is False

async def test_unreachable_is_edge_triggered(monitor, stub_notifier, make_probe, tmp_path):
    probe = make_probe(ProbeError("timeout"), ProbeError("timeout"), ServerStatus("Playing", 2))
    m = monitor(db=Database(server=ServerState(online=True)), probe=probe)
    await m.poll()
    await m.poll()
    assert _texts(stub_notifier) == [":man_shrugging: The server could not be reached."]
    assert m.db.server.unreachable is True and m.db.server.online is False
    assert json.loads((tmp_path / "db.json").read_text())["server"]["unreachable"] is True

    await m.poll()
    assert _texts(stub_notifier)[1:] == [
        ":thumbsup: The server has been found.",
        ":rocket: The server is back **online**!",
        ":rocket: Server version: **2**",
    ]
    assert m.db.server.unreachable is False
    assert stub_notifier.activities == ["Unknown", "Unknown", "0/4 online"]

async def test_unreachable_messages_can_be_disabled(monitor, stub_notifier, make_probe):
    probe = make_probe(ProbeError("timeout"), ServerStatus("Idle", 2))
    m = monitor(probe=probe, DISABLE_UNREACHABLE_FOUND_MESSAGES=True)
    await m.poll()
    await m.poll()
    assert stub_notifier.sent == []
    assert m.db.server.unreachable is False
