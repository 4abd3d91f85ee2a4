"""Admin content mutations: books, summaries, categories."""
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import NotAuthorized, NotFound, UpstreamUnavailable, ValidationError
from ..models.models import Author, Book, Category, KeyInsight, Summary, utcnow
from ..schemas import BookCreate, BookUpdate, CategoryCreate, SummaryCreate, SummaryUpdate
from ..security.auth import Caller
from . import content, storage

logger = logging.getLogger(__name__)

COVER_UPLOAD_FAILED = "cover_upload_failed"
REQUIRED_BOOK_FIELDS = ("title", "language")


@dataclass
class Upload:
    filename: Optional[str]
    data: bytes
    content_type: Optional[str] = None


@dataclass
class BookResult:
    book: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"book": self.book, "warnings": list(self.warnings)}


def _require_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise NotAuthorized("Admin privileges are required")


def normalize_author_name(name: str) -> str:
    return re.sub(r"\s+", " ", name).strip()


def find_or_create_author(db: Session, name: str) -> Author:
    """Case-insensitive lookup by name; creates the author when missing."""
    name = normalize_author_name(name)
    author = (
        db.query(Author)
        .filter(func.lower(Author.name) == name.lower())
        .order_by(Author.id.asc())
        .first()
    )
    if author:
        return author
    author = Author(name=name)
    db.add(author)
    db.flush()
    logger.info("created author id=%s name=%r", author.id, name)
    return author


def _upload_cover(cover: Optional[Upload], warnings: List[str]) -> Optional[str]:
    """Best-effort: a failed upload degrades to a book without a cover."""
    if cover is None or not cover.data:
        return None
    path = f"covers/{uuid.uuid4().hex}.{storage.extension_of(cover.filename, 'jpg')}"
    try:
        return storage.upload_public(storage.COVERS_BUCKET, path, cover.data, cover.content_type)
    except Exception:
        logger.warning("cover upload failed, continuing without cover", exc_info=True)
        warnings.append(COVER_UPLOAD_FAILED)
        return None


def _resolve_categories(db: Session, category_ids: List[int]) -> List[Category]:
    ids = list(dict.fromkeys(category_ids))
    if not ids:
        return []
    rows = db.query(Category).filter(Category.id.in_(ids)).all()
    found = {c.id: c for c in rows}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(f"Unknown category ids: {', '.join(str(i) for i in missing)}")
    return [found[i] for i in ids]


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("failed to save %s", what, exc_info=True)
        raise UpstreamUnavailable(f"Could not save the {what}") from e


def create_book(db: Session, caller: Caller, data: BookCreate, cover: Optional[Upload] = None) -> BookResult:
    _require_admin(caller)
    warnings: List[str] = []
    cover_url = _upload_cover(cover, warnings)
    try:
        categories = _resolve_categories(db, data.category_ids)
        author = find_or_create_author(db, data.author_name) if data.author_name and data.author_name.strip() else None
        book = Book(
            title=data.title.strip(),
            description=data.description or None,
            isbn=data.isbn or None,
            published_year=data.published_year or utcnow().year,
            language=data.language,
            page_count=data.page_count,
            cover_image_url=cover_url,
            author=author,
        )
        book.categories = categories
        db.add(book)
        db.commit()
    except ValidationError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("failed to save book %r", data.title, exc_info=True)
        raise UpstreamUnavailable("Could not save the book") from e
    db.refresh(book)
    logger.info("created book id=%s title=%r warnings=%s", book.id, book.title, warnings)
    return BookResult(book=content.book_to_dict(book), warnings=warnings)


def update_book(
    db: Session, caller: Caller, book_id: int, data: BookUpdate, cover: Optional[Upload] = None
) -> BookResult:
    _require_admin(caller)
    book = db.get(Book, book_id)
    if not book:
        raise NotFound("Book not found")
    fields = data.model_dump(exclude_unset=True)
    for key in REQUIRED_BOOK_FIELDS:
        if key in fields and fields[key] is None:
            raise ValidationError(f"{key} cannot be null")
    warnings: List[str] = []
    cover_url = _upload_cover(cover, warnings)
    try:
        if "category_ids" in fields:
            book.categories = _resolve_categories(db, fields.pop("category_ids") or [])
        if "author_name" in fields:
            name = fields.pop("author_name")
            book.author = find_or_create_author(db, name) if name and name.strip() else None
        for key, value in fields.items():
            setattr(book, key, value)
        if cover_url:
            book.cover_image_url = cover_url
        book.updated_at = utcnow()
        db.commit()
    except ValidationError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("failed to update book id=%s", book_id, exc_info=True)
        raise UpstreamUnavailable("Could not save the book") from e
    db.refresh(book)
    return BookResult(book=content.book_to_dict(book), warnings=warnings)


def _summary_detail(s: Summary) -> Dict[str, Any]:
    item = content.summary_meta(s)
    item.update(content.summary_body(s))
    return item


def create_summary(db: Session, caller: Caller, data: SummaryCreate) -> Dict[str, Any]:
    _require_admin(caller)
    if not db.get(Book, data.book_id):
        raise NotFound("Book not found")
    s = Summary(
        book_id=data.book_id,
        title=data.title,
        subtitle=data.subtitle,
        text_content=data.text_content,
        reading_time=data.reading_time,
        audio_url=data.audio_url,
        audio_duration=data.audio_duration,
        is_premium=data.is_premium,
        is_published=False,
        version=1,
        created_by=caller.uid,
    )
    s.insights = [
        KeyInsight(title=k.title, content=k.content, order_index=i) for i, k in enumerate(data.key_insights)
    ]
    db.add(s)
    _commit(db, "summary")
    db.refresh(s)
    return _summary_detail(s)


def update_summary(db: Session, caller: Caller, summary_id: int, data: SummaryUpdate) -> Dict[str, Any]:
    _require_admin(caller)
    s = db.get(Summary, summary_id)
    if not s:
        raise NotFound("Summary not found")
    fields = data.model_dump(exclude_unset=True)
    insights = fields.pop("key_insights", None)
    for key, value in fields.items():
        if value is None and key in ("title", "text_content", "reading_time", "is_premium"):
            continue
        setattr(s, key, value)
    if insights is not None:
        s.insights = [
            KeyInsight(title=k["title"], content=k["content"], order_index=i) for i, k in enumerate(insights)
        ]
    s.version = (s.version or 1) + 1
    s.updated_at = utcnow()
    _commit(db, "summary")
    db.refresh(s)
    return _summary_detail(s)


def set_published(db: Session, caller: Caller, summary_id: int, published: bool) -> Dict[str, Any]:
    _require_admin(caller)
    s = db.get(Summary, summary_id)
    if not s:
        raise NotFound("Summary not found")
    s.is_published = published
    s.updated_at = utcnow()
    _commit(db, "summary")
    db.refresh(s)
    logger.info("summary id=%s published=%s", s.id, published)
    return content.summary_meta(s)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or uuid.uuid4().hex[:8]


def create_category(db: Session, caller: Caller, data: CategoryCreate) -> Dict[str, Any]:
    _require_admin(caller)
    slug = slugify(data.slug or data.name)
    if db.query(Category.id).filter(Category.slug == slug).first():
        raise ValidationError(f"Category slug '{slug}' already exists")
    if data.parent_id is not None and not db.get(Category, data.parent_id):
        raise ValidationError("Unknown parent category")
    c = Category(name=data.name.strip(), slug=slug, description=data.description, parent_id=data.parent_id)
    db.add(c)
    _commit(db, "category")
    db.refresh(c)
    return content.category_to_dict(c)
