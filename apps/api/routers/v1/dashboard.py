from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...security.auth import Caller, require_caller
from ...services.dashboard import get_dashboard

router = APIRouter()


@router.get("")
def dashboard(db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return get_dashboard(db, caller)
