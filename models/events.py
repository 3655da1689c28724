from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

# Parsed server log events. Never persisted.

@dataclass(frozen=True)
class LogFileOpen:
    date: datetime

@dataclass(frozen=True)
class CommandLine:
    raw: str

@dataclass(frozen=True)
class LoginRequest:
    user_id: str
    name: str
    timestamp: datetime

@dataclass(frozen=True)
class JoinRequest:
    name: str
    timestamp: datetime

@dataclass(frozen=True)
class JoinSucceeded:
    name: str
    timestamp: datetime

@dataclass(frozen=True)
class ConnectionClose:
    user_id: str
    timestamp: datetime

LogEvent = Union[LogFileOpen, CommandLine, LoginRequest, JoinRequest, JoinSucceeded, ConnectionClose]
