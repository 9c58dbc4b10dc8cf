# recess_poc/api/v1/routers/debug.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from recess_poc.config import settings
from recess_poc.core.logging import get_logger
from recess_poc.db.core import get_session
from recess_poc.db.models import Event

log = get_logger("debug")

# Diagnostics for the demo database. Errors echo the raw driver message.
router = APIRouter(tags=["debug"])


def masked_key(key: Optional[str]) -> str:
    if not key:
        return "NOT SET"
    return f"configured ({len(key)} chars, {key[:8]}...{key[-4:]})"


def _tables(db: Session) -> List[str]:
    return sorted(inspect(db.get_bind()).get_table_names())


def _columns(db: Session, table: str, with_default: bool = True) -> List[Dict[str, Any]]:
    cols = []
    for c in inspect(db.get_bind()).get_columns(table):
        col = {
            "column_name": c["name"],
            "data_type": str(c["type"]),
            "is_nullable": "YES" if c.get("nullable", True) else "NO",
        }
        if with_default:
            col["column_default"] = c.get("default")
        cols.append(col)
    return cols


def _rows(result) -> List[Dict[str, Any]]:
    return jsonable_encoder([dict(r._mapping) for r in result])


def _failed(message: str, e: Exception) -> JSONResponse:
    log.error(f"{message}: {e}")
    return JSONResponse({"error": message, "details": str(e)}, status_code=500)


@router.get("/health")
def health():
    return {
        "status": "ok",
        "environment": {
            "NODE_ENV": settings.app_env,
            "SITE_URL": settings.site_url,
            "OPENROUTER_API_KEY": masked_key(settings.openrouter_api_key),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.get("/debug-db-schema")
def debug_db_schema(db: Session = Depends(get_session)):
    try:
        tables = _tables(db)
        events_schema = None
        sample_events = None
        if "events" in tables:
            events_schema = _columns(db, "events")
            sample_events = jsonable_encoder(db.exec(
                select(Event).where(or_(Event.name.ilike("%teen%"), Event.name.ilike("%dance%"))).limit(5)
            ).all())
        related = [t for t in tables if "event" in t or "program" in t or "activity" in t]
        return {
            "allTables": tables,
            "eventRelatedTables": related,
            "eventsTableExists": "events" in tables,
            "eventsSchema": events_schema,
            "sampleEvents": sample_events,
        }
    except SQLAlchemyError as e:
        return _failed("Failed to query database schema", e)


@router.get("/debug-simple-events")
def debug_simple_events(db: Session = Depends(get_session)):
    try:
        tables = _tables(db)
        search_results = None
        table_schema = None
        if "events" in tables:
            table_schema = _columns(db, "events", with_default=False)
            search_results = _rows(db.execute(text(
                "SELECT id, name, ages, location, start_date_time, price, is_free FROM events "
                "WHERE LOWER(name) LIKE :teen OR LOWER(name) LIKE :dance LIMIT 10"
            ), {"teen": "%teen%", "dance": "%dance%"}))
        elif "event" in tables:
            table_schema = _columns(db, "event", with_default=False)
            search_results = _rows(db.execute(text(
                "SELECT id, title, min_age, max_age, start_date, price, category FROM event "
                "WHERE LOWER(title) LIKE :teen OR LOWER(title) LIKE :dance LIMIT 10"
            ), {"teen": "%teen%", "dance": "%dance%"}))
        return {
            "tables": tables,
            "searchResults": search_results,
            "tableSchema": table_schema,
            "searchQuery": "teen% OR dance%",
        }
    except SQLAlchemyError as e:
        return _failed("Database query failed", e)


@router.get("/debug-event-age")
def debug_event_age(db: Session = Depends(get_session)):
    """Age extraction check for the "Dance Discovery - Evolution: Teens" listing."""
    try:
        events = db.exec(select(Event).where(or_(
            Event.name.ilike("%Dance Discovery%"),
            Event.name.ilike("%Evolution%"),
            Event.name.ilike("%Teens%"),
        ))).all()
        results: Dict[str, Any] = {
            "searchResults": jsonable_encoder(events),
            "totalFound": len(events),
        }
        if not events:
            teen = db.exec(select(Event).where(Event.name.ilike("%teen%")).limit(5)).all()
            results["teenEvents"] = jsonable_encoder(teen)
        results["sampleEvents"] = jsonable_encoder(db.exec(select(Event).limit(3)).all())
        for ev in events:
            log.info(f"event {ev.id}: name={ev.name!r} ages={ev.ages} price={ev.price} free={ev.is_free}")
        return results
    except SQLAlchemyError as e:
        return _failed("Failed to query events", e)
