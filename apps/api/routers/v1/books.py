from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...security.auth import Caller, get_current_caller
from ...services import content

router = APIRouter()


@router.get("")
def list_books(
    q: Optional[str] = None,
    author: Optional[str] = None,
    category_id: Optional[int] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return content.list_books(db, q=q, author=author, category_id=category_id, offset=offset, limit=limit)


@router.get("/{book_id}")
def get_book(book_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_current_caller)):
    return content.get_book(db, book_id, caller)
