"""Summary generation requests: pending -> processing -> completed | failed.

A request reaches exactly one terminal state and is never touched again;
retrying means creating a new request.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..errors import Conflict, NotAuthorized, NotFound, UpstreamUnavailable, ValidationError
from ..models.models import Book, GenerationRequest, KeyInsight, Summary, utcnow
from ..schemas import GenerationCreate
from ..security.auth import Caller
from . import llm

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED)
TERMINAL = (COMPLETED, FAILED)

MAX_INSIGHTS = 7
DEFAULT_READING_TIME = 15


def request_to_dict(r: GenerationRequest) -> Dict[str, Any]:
    return {
        "id": r.id,
        "book_id": r.book_id,
        "requested_by": r.requested_by,
        "status": r.status,
        "done": r.status in TERMINAL,
        "settings": r.settings or {},
        "source_url": r.source_url,
        "result_summary_id": r.result_summary_id,
        "error_message": r.error_message,
        "created_at": r.created_at.isoformat(),
        "updated_at": r.updated_at.isoformat(),
    }


def create_request(db: Session, caller: Caller, data: GenerationCreate) -> GenerationRequest:
    if not caller.is_admin:
        raise NotAuthorized("Admin privileges are required")
    if not db.get(Book, data.book_id):
        raise NotFound("Book not found")
    req = GenerationRequest(
        book_id=data.book_id,
        requested_by=caller.uid,
        status=PENDING,
        source_text=data.source_text,
        source_url=data.source_url,
        settings=data.settings.model_dump(),
    )
    db.add(req)
    db.commit()
    db.refresh(req)
    logger.info("generation request id=%s book=%s queued", req.id, req.book_id)
    return req


def get_request(db: Session, caller: Caller, request_id: int) -> GenerationRequest:
    req = db.get(GenerationRequest, request_id)
    if not req or not (caller.is_admin or req.requested_by == caller.uid):
        raise NotFound("Generation request not found")
    return req


def list_requests(db: Session, caller: Caller, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    if not caller.is_admin:
        raise NotAuthorized("Admin privileges are required")
    if status is not None and status not in STATUSES:
        raise ValidationError(f"Unknown status '{status}'")
    q = db.query(GenerationRequest)
    if status:
        q = q.filter(GenerationRequest.status == status)
    rows = q.order_by(GenerationRequest.created_at.desc(), GenerationRequest.id.desc()).limit(limit).all()
    return [request_to_dict(r) for r in rows]


def _transition(db: Session, req: GenerationRequest, from_status: str, **values) -> None:
    """Compare-and-set on status; raises Conflict when another worker got there first."""
    values.setdefault("updated_at", utcnow())
    result = db.execute(
        update(GenerationRequest)
        .where(GenerationRequest.id == req.id, GenerationRequest.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise Conflict(f"Generation request {req.id} is no longer {from_status}")


def claim_next(db: Session, book_id: Optional[int] = None, attempts: int = 5) -> Optional[GenerationRequest]:
    """Move the oldest pending request (optionally for one book) to processing."""
    for _ in range(attempts):
        q = db.query(GenerationRequest.id).filter(GenerationRequest.status == PENDING)
        if book_id is not None:
            q = q.filter(GenerationRequest.book_id == book_id)
        row = q.order_by(GenerationRequest.created_at.asc(), GenerationRequest.id.asc()).first()
        if row is None:
            return None
        result = db.execute(
            update(GenerationRequest)
            .where(GenerationRequest.id == row.id, GenerationRequest.status == PENDING)
            .values(status=PROCESSING, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount == 1:
            req = db.get(GenerationRequest, row.id)
            db.refresh(req)
            logger.info("generation request id=%s claimed", req.id)
            return req
    return None


def run_request(db: Session, req: GenerationRequest, complete: Optional[Callable[[str], str]] = None) -> GenerationRequest:
    """Generate the summary for a claimed request and record the terminal state."""
    if req.status != PROCESSING:
        raise Conflict(f"Generation request {req.id} is {req.status}, not {PROCESSING}")
    complete = complete or llm.complete
    settings = req.settings or {}
    reading_time = int(settings.get("reading_time") or DEFAULT_READING_TIME)
    try:
        book = db.get(Book, req.book_id) if req.book_id is not None else None
        if not book:
            raise NotFound("Book not found")
        prompt = llm.build_summary_prompt(
            book.title, book.author.name if book.author else None, reading_time, req.source_text
        )
        text = complete(prompt)
        if not text or not text.strip():
            raise UpstreamUnavailable("Summary generation returned no content")
        sections = llm.split_sections(text)
        summary = Summary(
            book_id=book.id,
            title=f"Summary of {book.title}",
            text_content="\n\n".join(sections),
            reading_time=reading_time,
            is_premium=True,
            is_published=False,
            created_by=req.requested_by,
        )
        summary.insights = [
            KeyInsight(title=f"Insight {i + 1}", content=s, order_index=i)
            for i, s in enumerate(sections[:MAX_INSIGHTS])
        ]
        db.add(summary)
        db.flush()
        _transition(db, req, PROCESSING, status=COMPLETED, result_summary_id=summary.id, error_message=None)
        db.commit()
    except Conflict:
        raise
    except Exception as e:
        db.rollback()
        logger.warning("generation request id=%s failed: %s", req.id, e, exc_info=True)
        message = getattr(e, "message", None) or str(e) or type(e).__name__
        _transition(db, req, PROCESSING, status=FAILED, error_message=message[:1000])
        db.commit()
    db.refresh(req)
    logger.info("generation request id=%s -> %s", req.id, req.status)
    return req


def process_next(
    db: Session, book_id: Optional[int] = None, complete: Optional[Callable[[str], str]] = None
) -> Optional[GenerationRequest]:
    req = claim_next(db, book_id=book_id)
    if req is None:
        return None
    return run_request(db, req, complete=complete)
