# routers/health.py
from pathlib import Path

from fastapi import APIRouter, HTTPException
from sqlalchemy import inspect, text

from alembic.config import Config
from alembic.script import ScriptDirectory
from db import Base, engine

router = APIRouter(prefix="/health", tags=["health"])

_ROOT = Path(__file__).resolve().parent.parent


@router.get("/db")
def health_db():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            present = set(inspect(conn).get_table_names())
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"db_error: {type(e).__name__}: {e}")
    missing = sorted(set(Base.metadata.tables) - present)
    return {"ok": not missing, "missing_tables": missing}


def _alembic_heads() -> list[str]:
    cfg = Config(str(_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_ROOT / "alembic"))
    return list(ScriptDirectory.from_config(cfg).get_heads())


def _db_version(conn) -> str | None:
    if "alembic_version" not in inspect(conn).get_table_names():
        return None
    return conn.execute(text("SELECT version_num FROM alembic_version")).scalar_one_or_none()


@router.get("/migrations")
def health_migrations():
    try:
        heads = _alembic_heads()
    except Exception as e:
        return {"ok": False, "error": f"alembic_config: {e}", "code_heads": [], "db_version": None}

    try:
        with engine.connect() as conn:
            db_ver = _db_version(conn)
    except Exception as e:
        return {
            "ok": False,
            "error": f"db_connect_failed: {e}",
            "code_heads": heads,
            "db_version": None,
        }

    synced = db_ver in heads
    return {"ok": synced, "synced": synced, "db_version": db_ver, "code_heads": heads}
