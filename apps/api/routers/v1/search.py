from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import SearchIn
from ...security.auth import Caller, get_current_caller
from ...services.search import search_summaries

router = APIRouter()


@router.post("")
def search(payload: SearchIn, db: Session = Depends(get_db), caller: Caller = Depends(get_current_caller)):
    return search_summaries(db, caller, payload)
