# utils/log_parser.py
from __future__ import annotations

import re
from datetime import datetime, timezone

from models.events import (
    CommandLine,
    ConnectionClose,
    JoinRequest,
    JoinSucceeded,
    LogEvent,
    LogFileOpen,
    LoginRequest,
)

# [2024.10.18-12.34.56:789][123]LogNet: ...  (server log times are UTC)
_TS = r"^\[(?P<ts>[^\]]+)\]\[\s*\d+\]"

LOG_FILE_OPEN_RE = re.compile(r"^Log file open, (?P<date>.+?)\s*$")
COMMAND_LINE_RE = re.compile(r"LogInit: Command Line:(?P<args>.*)$")
LOGIN_REQUEST_RE = re.compile(
    _TS + r"LogNet: Login request: .*?\?Name=(?P<name>[^?]*?)(?:\?\S*)? userId: (?P<user_id>\S*)"
)
JOIN_REQUEST_RE = re.compile(_TS + r"LogNet: Join request: .*?\?Name=(?P<name>[^?]*)")
JOIN_SUCCEEDED_RE = re.compile(_TS + r"LogNet: Join succeeded: (?P<name>.*?)\s*$")
CONNECTION_CLOSE_RE = re.compile(
    _TS + r"LogNet: UNetConnection::Close: .*?UniqueId: (?P<user_id>[^,\s]*)"
)

def parse_timestamp(raw: str) -> datetime | None:
    try:
        return datetime.strptime(raw.strip(), "%Y.%m.%d-%H.%M.%S:%f").replace(tzinfo=timezone.utc)
    except ValueError:
        return None

def parse_log_date(raw: str) -> datetime | None:
    try:
        return datetime.strptime(raw.strip(), "%m/%d/%y %H:%M:%S")
    except ValueError:
        return None

def parse(line: str) -> LogEvent | None:
    """Turn one server log line into an event, or ``None`` when the line is not interesting
    or a matching line is missing a field we need."""
    line = line.rstrip("\r\n")

    m = LOG_FILE_OPEN_RE.match(line)
    if m:
        date = parse_log_date(m.group("date"))
        return LogFileOpen(date=date) if date else None

    m = COMMAND_LINE_RE.search(line)
    if m:
        return CommandLine(raw=m.group("args").strip())

    m = LOGIN_REQUEST_RE.match(line)
    if m:
        ts = parse_timestamp(m.group("ts"))
        name, user_id = m.group("name").strip(), m.group("user_id").strip()
        if ts is None or not name or not user_id:
            return None
        return LoginRequest(user_id=user_id, name=name, timestamp=ts)

    m = JOIN_REQUEST_RE.match(line)
    if m:
        ts = parse_timestamp(m.group("ts"))
        name = m.group("name").strip()
        if ts is None or not name:
            return None
        return JoinRequest(name=name, timestamp=ts)

    m = JOIN_SUCCEEDED_RE.match(line)
    if m:
        ts = parse_timestamp(m.group("ts"))
        name = m.group("name").strip()
        if ts is None or not name:
            return None
        return JoinSucceeded(name=name, timestamp=ts)

    m = CONNECTION_CLOSE_RE.match(line)
    if m:
        ts = parse_timestamp(m.group("ts"))
        user_id = m.group("user_id").strip()
        if ts is None or not user_id:
            return None
        return ConnectionClose(user_id=user_id, timestamp=ts)

    return None
