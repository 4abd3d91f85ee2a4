import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import case, delete
from sqlalchemy.orm import Session

from ..db.session import insert_for
from ..errors import NotAuthenticated, NotFound, ValidationError
from ..models.models import Bookmark, ReadingHistory, Summary, utcnow
from ..security.auth import Caller
from . import content

logger = logging.getLogger(__name__)


def _require_user(caller: Caller) -> str:
    if caller.is_anonymous:
        raise NotAuthenticated()
    return caller.uid


def _require_summary(db: Session, caller: Caller, summary_id: int) -> Summary:
    summary = db.get(Summary, summary_id)
    if not summary or not (summary.is_published or caller.is_admin):
        raise NotFound("Summary not found")
    return summary


def record_progress(db: Session, caller: Caller, summary_id: int, percent: float) -> ReadingHistory:
    user_id = _require_user(caller)
    if isinstance(percent, bool) or not isinstance(percent, (int, float)) or not math.isfinite(percent):
        raise ValidationError("Progress must be a number between 0 and 100")
    if percent < 0 or percent > 100:
        raise ValidationError("Progress must be between 0 and 100")
    _require_summary(db, caller, summary_id)

    now = utcnow()
    stmt = insert_for(db, ReadingHistory).values(
        user_id=user_id,
        summary_id=summary_id,
        progress=float(percent),
        completed=percent >= 100,
        last_read_at=now,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[ReadingHistory.user_id, ReadingHistory.summary_id],
        set_={
            "progress": stmt.excluded.progress,
            "completed": stmt.excluded.completed,
            # last_read_at never goes backwards, even with skewed clocks
            "last_read_at": case(
                (ReadingHistory.last_read_at > stmt.excluded.last_read_at, ReadingHistory.last_read_at),
                else_=stmt.excluded.last_read_at,
            ),
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    db.commit()
    row = (
        db.query(ReadingHistory)
        .filter(ReadingHistory.user_id == user_id, ReadingHistory.summary_id == summary_id)
        .one()
    )
    db.refresh(row)
    return row


def get_progress(db: Session, caller: Caller, summary_id: int) -> Optional[ReadingHistory]:
    user_id = _require_user(caller)
    return (
        db.query(ReadingHistory)
        .filter(ReadingHistory.user_id == user_id, ReadingHistory.summary_id == summary_id)
        .one_or_none()
    )


def toggle_bookmark(db: Session, caller: Caller, summary_id: int) -> Dict[str, bool]:
    user_id = _require_user(caller)
    _require_summary(db, caller, summary_id)

    removed = db.execute(
        delete(Bookmark)
        .where(Bookmark.user_id == user_id, Bookmark.summary_id == summary_id)
        .execution_options(synchronize_session=False)
    )
    if removed.rowcount:
        db.commit()
        return {"bookmarked": False}

    stmt = insert_for(db, Bookmark).values(user_id=user_id, summary_id=summary_id, created_at=utcnow())
    inserted = db.execute(stmt.on_conflict_do_nothing(index_elements=[Bookmark.user_id, Bookmark.summary_id]))
    db.commit()
    if not inserted.rowcount:
        # a concurrent toggle inserted first; the pair is bookmarked either way
        logger.debug("bookmark insert for user=%s summary=%s hit an existing row", user_id, summary_id)
    return {"bookmarked": True}


def is_bookmarked(db: Session, caller: Caller, summary_id: int) -> bool:
    if caller.is_anonymous:
        return False
    return (
        db.query(Bookmark.id)
        .filter(Bookmark.user_id == caller.uid, Bookmark.summary_id == summary_id)
        .first()
        is not None
    )


def history_to_dict(row: ReadingHistory) -> Dict[str, Any]:
    return {
        "summary_id": row.summary_id,
        "progress": float(row.progress),
        "completed": bool(row.completed),
        "last_read_at": row.last_read_at.isoformat() if row.last_read_at else None,
    }


def list_history(db: Session, caller: Caller, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    user_id = _require_user(caller)
    q = (
        db.query(ReadingHistory)
        .filter(ReadingHistory.user_id == user_id)
        .order_by(ReadingHistory.last_read_at.desc(), ReadingHistory.id.desc())
    )
    if limit:
        q = q.limit(limit)
    items = []
    for row in q.all():
        item = history_to_dict(row)
        item["summary"] = content.summary_meta(row.summary)
        items.append(item)
    return items


def list_bookmarks(db: Session, caller: Caller) -> List[Dict[str, Any]]:
    user_id = _require_user(caller)
    rows = (
        db.query(Bookmark)
        .filter(Bookmark.user_id == user_id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .all()
    )
    return [
        {
            "id": b.id,
            "created_at": b.created_at.isoformat(),
            "summary": content.summary_meta(b.summary),
        }
        for b in rows
    ]
