from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from models.server import Database, ServerState

log = logging.getLogger(__name__)

def load_database(path: str | os.PathLike) -> Database:
    """Load persisted state. Player sessions are never trusted across a restart."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("not a JSON object")
        # only the server block is kept; saved players may use any older layout
        server = ServerState.model_validate(raw.get("server") or {})
    except (OSError, ValueError, ValidationError) as e:
        log.warning("Unable to read %s (%s); creating new database", path, e)
        db = Database()
        save_database(path, db)
        log.info("New DB written: %s", path)
        return db
    log.info("Found: %s", path)
    return Database(server=server)

def save_database(path: str | os.PathLike, db: Database) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(db.model_dump_json(indent=2))
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise