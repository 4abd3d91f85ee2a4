import logging
import os
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...db.session import SessionLocal, get_db
from ...schemas import GenerationCreate
from ...security.auth import Caller, require_admin, require_caller
from ...services import generation

logger = logging.getLogger(__name__)

router = APIRouter()

GENERATION_INLINE = os.getenv("GENERATION_INLINE", "false").lower() == "true"


def _process_in_background(book_id: int) -> None:
    db = SessionLocal()
    try:
        req = generation.process_next(db, book_id=book_id)
        if req is None:
            logger.info("no pending generation request for book=%s", book_id)
    finally:
        db.close()


@router.post("/summaries", status_code=202)
def request_summary(
    payload: GenerationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    req = generation.create_request(db, caller, payload)
    if GENERATION_INLINE:
        background_tasks.add_task(_process_in_background, req.book_id)
    return generation.request_to_dict(req)


@router.get("/{request_id}/status")
def request_status(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return generation.request_to_dict(generation.get_request(db, caller, request_id))


@router.get("")
def list_requests(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return {"items": generation.list_requests(db, caller, status=status, limit=limit)}
