# services/registry.py
"""
Player presence transitions.

Every function takes the current :class:`Database` and returns a new one; the
caller owns the value and decides what to announce. A player present in
``db.players`` is connected.

Join events carry only the display name, so they are matched to a login by
the first player with that name. Two connected players sharing a name are
not told apart.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from models.server import Database, Player

SENTINEL_USER_IDS = ("INVALID", "UNKNOWN")

@dataclass(frozen=True)
class Departure:
    player: Player
    duration: timedelta

    @property
    def minutes(self) -> int:
        # halves round up
        return math.floor(self.duration.total_seconds() / 60 + 0.5)

def is_sentinel(user_id: str) -> bool:
    return user_id in SENTINEL_USER_IDS

def find_player_by_name(db: Database, name: str) -> Player | None:
    return next((p for p in db.players.values() if p.name == name), None)

def online_players(db: Database) -> list[Player]:
    """Players that completed a join, in connection order."""
    return [p for p in db.players.values() if p.joined_count > 0]

def _with_player(db: Database, player: Player) -> Database:
    return db.model_copy(update={"players": {**db.players, player.user_id: player}})

def on_login_request(db: Database, user_id: str, name: str, now: datetime) -> Database:
    if is_sentinel(user_id):
        return db
    # a new login always starts a fresh session
    return _with_player(db, Player(user_id=user_id, name=name))

def on_join_request(db: Database, name: str, now: datetime) -> Database:
    player = find_player_by_name(db, name)
    if player is None:
        return db
    return _with_player(
        db, player.model_copy(update={"join_requested_count": player.join_requested_count + 1})
    )

def on_join_succeeded(db: Database, name: str, now: datetime) -> tuple[Database, Player | None]:
    player = find_player_by_name(db, name)
    if player is None or player.join_requested_count <= 0:
        return db, None
    joined = player.model_copy(
        update={"joined_count": player.joined_count + 1, "last_join_timestamp": now}
    )
    return _with_player(db, joined), joined

def on_connection_close(db: Database, user_id: str, now: datetime) -> tuple[Database, Departure | None]:
    if is_sentinel(user_id):
        return db, None
    player = db.players.get(user_id)
    if player is None:
        return db, None
    players = {uid: p for uid, p in db.players.items() if uid != user_id}
    duration = now - (player.last_join_timestamp or now)
    return db.model_copy(update={"players": players}), Departure(player=player, duration=duration)

def on_log_file_open(db: Database) -> Database:
    return db.model_copy(update={"players": {}})
