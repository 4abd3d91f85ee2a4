"""Summary search over published content.

PostgreSQL ranks with full-text search (see the `summaries_fts` expression
index in db/schema.sql); other dialects use substring matching.
"""
from typing import Any, Dict

from sqlalchemy import func, literal_column, or_, select
from sqlalchemy.orm import Session, joinedload

from ..db.session import dialect_name
from ..models.models import Author, Book, BookCategory, Summary
from ..schemas import SearchIn
from ..security.auth import Caller
from . import content

# literal SQL so the expression matches the summaries_fts index
TS_CONFIG = literal_column("'english'")
SPACE = literal_column("' '")
EMPTY = literal_column("''")


def _document():
    return func.to_tsvector(
        TS_CONFIG,
        func.coalesce(Summary.title, EMPTY)
        + SPACE
        + func.coalesce(Summary.subtitle, EMPTY)
        + SPACE
        + func.coalesce(Summary.text_content, EMPTY),
    )


def search_summaries(db: Session, caller: Caller, params: SearchIn) -> Dict[str, Any]:
    q = (
        db.query(Summary)
        .join(Book, Summary.book_id == Book.id)
        .outerjoin(Author, Book.author_id == Author.id)
        .options(joinedload(Summary.book).joinedload(Book.author))
        .filter(Summary.is_published.is_(True))
    )

    if params.category_ids:
        in_category = select(BookCategory.book_id).where(BookCategory.category_id.in_(params.category_ids))
        q = q.filter(Summary.book_id.in_(in_category))
    if params.reading_time_max is not None:
        q = q.filter(Summary.reading_time <= params.reading_time_max)
    if params.audio_only:
        q = q.filter(Summary.audio_url.isnot(None))
    if not params.include_premium:
        q = q.filter(Summary.is_premium.is_(False))

    term = (params.query or "").strip()
    order = [Summary.created_at.desc(), Summary.id.desc()]
    if term:
        if dialect_name(db) == "postgresql":
            tsq = func.plainto_tsquery(TS_CONFIG, term)
            q = q.filter(
                or_(
                    _document().op("@@")(tsq),
                    Book.title.icontains(term, autoescape=True),
                    Author.name.icontains(term, autoescape=True),
                )
            )
            order = [func.ts_rank(_document(), tsq).desc()] + order
        else:
            q = q.filter(
                or_(
                    Summary.title.icontains(term, autoescape=True),
                    Summary.subtitle.icontains(term, autoescape=True),
                    Summary.text_content.icontains(term, autoescape=True),
                    Book.title.icontains(term, autoescape=True),
                    Author.name.icontains(term, autoescape=True),
                )
            )

    total = q.count()
    offset = (params.page - 1) * params.limit
    rows = q.order_by(*order).offset(offset).limit(params.limit).all()
    return {
        "items": [content.summary_meta(s) for s in rows],
        "page": params.page,
        "limit": params.limit,
        "total": total,
    }
