from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..errors import NotAuthenticated
from ..models.models import Book, BookCategory, Collection, ReadingHistory, Summary, utcnow
from ..security.auth import Caller
from . import collections, content, reading
from .profiles import ensure_profile, profile_to_dict
from .subscriptions import get_subscription_status

HISTORY_LIMIT = 10
RECOMMENDATION_LIMIT = 5


def recommendations(db: Session, user_id: str, limit: int = RECOMMENDATION_LIMIT) -> List[Dict[str, Any]]:
    """Published summaries from categories the user has read, minus ones already read."""
    read_ids = select(ReadingHistory.summary_id).where(ReadingHistory.user_id == user_id)
    read_books = select(Summary.book_id).where(Summary.id.in_(read_ids)).correlate(None)
    categories = select(BookCategory.category_id).where(BookCategory.book_id.in_(read_books))
    in_categories = select(BookCategory.book_id).where(BookCategory.category_id.in_(categories))
    rows = (
        db.query(Summary)
        .options(joinedload(Summary.book).joinedload(Book.author))
        .filter(
            Summary.is_published.is_(True),
            Summary.book_id.in_(in_categories),
            Summary.id.notin_(read_ids),
        )
        .order_by(Summary.created_at.desc(), Summary.id.desc())
        .limit(limit)
        .all()
    )
    return [content.summary_meta(s) for s in rows]


def reading_stats(db: Session, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    rows = (
        db.query(ReadingHistory.progress, ReadingHistory.completed, ReadingHistory.last_read_at, Summary.reading_time)
        .join(Summary, ReadingHistory.summary_id == Summary.id)
        .filter(ReadingHistory.user_id == user_id)
        .all()
    )
    completed = [r for r in rows if r.completed]
    weighted = sum((r.reading_time or 0) * (r.progress or 0) / 100.0 for r in rows)
    return {
        "summaries_read": len(completed),
        "minutes_read": sum(r.reading_time or 0 for r in completed),
        "summaries_this_month": sum(
            1 for r in completed if r.last_read_at.year == now.year and r.last_read_at.month == now.month
        ),
        "reading_time": int(round(weighted)),
    }


def get_dashboard(db: Session, caller: Caller, now: Optional[datetime] = None) -> Dict[str, Any]:
    if caller.is_anonymous:
        raise NotAuthenticated()
    profile = ensure_profile(db, caller)
    owned = (
        db.query(Collection)
        .filter(Collection.user_id == caller.uid)
        .order_by(Collection.updated_at.desc(), Collection.id.desc())
        .all()
    )
    return {
        "profile": profile_to_dict(profile),
        "subscription": get_subscription_status(db, caller.uid, now=now).to_dict(),
        "reading_history": reading.list_history(db, caller, limit=HISTORY_LIMIT),
        "bookmarks": reading.list_bookmarks(db, caller),
        "collections": [collections.collection_to_dict(c, with_items=True) for c in owned],
        "recommendations": recommendations(db, caller.uid),
        "stats": reading_stats(db, caller.uid, now=now),
    }
