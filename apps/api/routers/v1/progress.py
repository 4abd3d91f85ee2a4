from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import ProgressIn
from ...security.auth import Caller, require_caller
from ...services import reading

router = APIRouter()


@router.post("")
def save_progress(payload: ProgressIn, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    row = reading.record_progress(db, caller, payload.summary_id, payload.progress)
    return reading.history_to_dict(row)


@router.get("")
def get_progress(summary_id: int, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    row = reading.get_progress(db, caller, summary_id)
    if not row:
        return {"summary_id": summary_id, "progress": 0.0, "completed": False, "last_read_at": None}
    return reading.history_to_dict(row)


@router.get("/history")
def history(
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_caller),
):
    return {"items": reading.list_history(db, caller, limit=limit)}
