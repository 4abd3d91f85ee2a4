from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...security.auth import Caller, get_current_caller
from ...services import content, reading

router = APIRouter()


@router.get("")
def list_summaries(
    book_id: Optional[int] = None,
    category_id: Optional[int] = None,
    include_drafts: bool = False,
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return content.list_summaries(
        db,
        caller,
        book_id=book_id,
        category_id=category_id,
        include_drafts=include_drafts,
        offset=offset,
        limit=limit,
    )


@router.get("/{summary_id}")
def get_summary(summary_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_current_caller)):
    item = content.get_summary_view(db, summary_id, caller)
    item["bookmarked"] = reading.is_bookmarked(db, caller, summary_id)
    progress = reading.get_progress(db, caller, summary_id) if not caller.is_anonymous else None
    item["progress"] = reading.history_to_dict(progress) if progress else None
    return item
