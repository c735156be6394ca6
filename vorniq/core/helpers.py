import logging
from datetime import date, datetime
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def require_fields(data: dict, *names):
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")


def parse_enum(enum_cls, value, field: str, default=None):
    if value in (None, ""):
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value))
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise HTTPException(status_code=400, detail=f"Invalid {field} '{value}'. Allowed: {allowed}")


def parse_date(value, field: str):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date for {field}: {value}")


def parse_datetime(value, field: str):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid datetime for {field}: {value}")


def parse_float(value, field: str, default=None):
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid number for {field}: {value}")


def parse_int(value, field: str, default=None):
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid integer for {field}: {value}")


def iso(value):
    return value.isoformat() if value else None


def money(value) -> float:
    return float(value or 0)


def search_filter(search: str, *columns):
    pattern = f"%{search}%"
    clause = columns[0].ilike(pattern)
    for col in columns[1:]:
        clause = clause | col.ilike(pattern)
    return clause


def commit_or_400(db: Session, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to %s", action)
        raise HTTPException(status_code=400, detail=f"Could not {action}: {e.__class__.__name__}")
    logger.info("Committed: %s", action)


def get_or_404(db: Session, model, obj_id: int, label: str):
    obj = db.query(model).filter(model.id == obj_id).first()
    if not obj:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj
