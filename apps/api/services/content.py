"""Catalog read path: books, summaries and categories as API dicts."""
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..errors import NotFound
from ..models.models import Author, Book, BookCategory, Category, Summary
from ..security.auth import Caller
from .entitlement import Access, evaluate
from .subscriptions import status_lookup_for

PLACEHOLDER_COVER = "/placeholder.svg"
UNKNOWN_AUTHOR = "Unknown Author"


def category_to_dict(c: Category) -> Dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "image_url": c.image_url,
        "parent_id": c.parent_id,
    }


def book_to_dict(b: Book) -> Dict[str, Any]:
    return {
        "id": b.id,
        "title": b.title,
        "description": b.description,
        "cover_image_url": b.cover_image_url,
        "author_id": b.author_id,
        "author_name": b.author.name if b.author else None,
        "published_year": b.published_year,
        "isbn": b.isbn,
        "language": b.language,
        "page_count": b.page_count,
        "category_ids": [c.id for c in b.categories],
    }


def summary_meta(s: Summary) -> Dict[str, Any]:
    """Summary fields that are safe to show to anyone (no body, no audio)."""
    book = s.book
    return {
        "id": s.id,
        "book_id": s.book_id,
        "title": s.title,
        "subtitle": s.subtitle,
        "reading_time": s.reading_time,
        "has_audio": s.audio_url is not None,
        "is_premium": bool(s.is_premium),
        "is_published": bool(s.is_published),
        "version": s.version,
        "book": {
            "title": book.title if book else None,
            "cover_image_url": (book.cover_image_url if book else None) or PLACEHOLDER_COVER,
            "author_name": (book.author.name if book and book.author else None) or UNKNOWN_AUTHOR,
        },
    }


def summary_body(s: Summary) -> Dict[str, Any]:
    return {
        "content": s.text_content,
        "audio_url": s.audio_url,
        "audio_duration": s.audio_duration,
        "key_insights": [
            {"id": k.id, "title": k.title, "content": k.content, "order_index": k.order_index}
            for k in sorted(s.insights, key=lambda k: k.order_index)
        ],
    }


def list_categories(db: Session) -> List[Dict[str, Any]]:
    rows = db.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()
    return [category_to_dict(c) for c in rows]


def get_book(db: Session, book_id: int, caller: Caller) -> Dict[str, Any]:
    b = db.get(Book, book_id)
    if not b:
        raise NotFound("Book not found")
    item = book_to_dict(b)
    summaries = [s for s in b.summaries if s.is_published or caller.is_admin]
    item["summaries"] = [summary_meta(s) for s in sorted(summaries, key=lambda s: s.id)]
    return item


def list_books(
    db: Session,
    q: Optional[str] = None,
    author: Optional[str] = None,
    category_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 20,
) -> Dict[str, Any]:
    query = db.query(Book).outerjoin(Author, Book.author_id == Author.id)
    if q:
        query = query.filter(
            or_(Book.title.icontains(q, autoescape=True), Author.name.icontains(q, autoescape=True))
        )
    if author:
        query = query.filter(Author.name.icontains(author, autoescape=True))
    if category_id is not None:
        query = query.join(BookCategory, BookCategory.book_id == Book.id).filter(
            BookCategory.category_id == category_id
        )
    total = query.count()
    rows = query.order_by(Book.created_at.desc(), Book.id.desc()).offset(offset).limit(limit).all()
    return {"items": [book_to_dict(b) for b in rows], "offset": offset, "limit": limit, "total": total}


def list_summaries(
    db: Session,
    caller: Caller,
    book_id: Optional[int] = None,
    category_id: Optional[int] = None,
    include_drafts: bool = False,
    offset: int = 0,
    limit: int = 10,
) -> Dict[str, Any]:
    query = db.query(Summary).options(joinedload(Summary.book).joinedload(Book.author))
    if not (include_drafts and caller.is_admin):
        query = query.filter(Summary.is_published.is_(True))
    if book_id is not None:
        query = query.filter(Summary.book_id == book_id)
    if category_id is not None:
        query = query.join(BookCategory, BookCategory.book_id == Summary.book_id).filter(
            BookCategory.category_id == category_id
        )
    total = query.count()
    rows = query.order_by(Summary.created_at.desc(), Summary.id.desc()).offset(offset).limit(limit).all()
    return {"items": [summary_meta(s) for s in rows], "offset": offset, "limit": limit, "total": total}


def get_summary_view(db: Session, summary_id: int, caller: Caller) -> Dict[str, Any]:
    s = db.get(Summary, summary_id)
    if not s:
        raise NotFound("Summary not found")
    access = evaluate(caller, s, status_lookup_for(db))
    if access is Access.DENY_NOT_FOUND:
        raise NotFound("Summary not found")
    item = summary_meta(s)
    item["access"] = access.value
    if access is Access.ALLOW:
        item.update(summary_body(s))
    return item
