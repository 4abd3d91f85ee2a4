from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import BookmarkIn
from ...security.auth import Caller, require_caller
from ...services import reading

router = APIRouter()


@router.post("/toggle")
def toggle(payload: BookmarkIn, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return reading.toggle_bookmark(db, caller, payload.summary_id)


@router.get("")
def list_bookmarks(db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return {"items": reading.list_bookmarks(db, caller)}
