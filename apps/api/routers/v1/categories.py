from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...services import content

router = APIRouter()


@router.get("")
def list_categories(db: Session = Depends(get_db)):
    return {"items": content.list_categories(db)}
