from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

class ServerState(BaseModel):
    online: bool = False
    unreachable: bool = False
    version: Optional[int] = None

class Player(BaseModel):
    user_id: str
    name: str
    join_requested_count: int = Field(default=0, ge=0)
    joined_count: int = Field(default=0, ge=0)
    last_join_timestamp: Optional[datetime] = None

class Database(BaseModel):
    """Durable bot state. Only ``server`` survives a restart."""
    server: ServerState = Field(default_factory=ServerState)
    players: dict[str, Player] = Field(default_factory=dict)

@dataclass(frozen=True)
class PurgeConfig:
    channel_name: str
    after_days: int = -1   # negative = disabled
    after_lines: int = -1  # negative = disabled
    hour: int = 2
    on_startup: bool = False
