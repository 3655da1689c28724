from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from services import registry

router = APIRouter(tags=["status"])

def _monitor(request: Request):
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(status_code=503, detail="Monitor not ready")
    return monitor

@router.get("/status")
async def status(request: Request):
    monitor = _monitor(request)
    db = monitor.db
    return {
        "server": db.server.model_dump(),
        "players": [
            {"name": p.name, "joined_at": p.last_join_timestamp}
            for p in registry.online_players(db)
        ],
        "max_players": monitor.settings.SERVER_MAX_PLAYERS,
    }
