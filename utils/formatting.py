from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from models.server import Player

def format_list(items) -> str:
    items = list(items)
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " or " + items[-1]

def format_minutes(minutes: int) -> str:
    hours, mins = divmod(max(int(minutes), 0), 60)
    parts = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if mins or not hours:
        parts.append(f"{mins} minute{'s' if mins != 1 else ''}")
    return " ".join(parts)

def format_players(players: list[Player]) -> str:
    return ", ".join(p.name for p in players)

def get_timestamp(tz: str = "UTC", now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d %H:%M %Z")

def roster_line(players: list[Player], max_players: int, timestamp: str) -> str:
    names = format_players(players)
    line = f":astronaut: **{len(players)}**/{max_players} online"
    if names:
        line += f": **{names}**"
    return f"{line} ({timestamp})"
