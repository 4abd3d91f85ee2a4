from typing import Optional, Type

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import BookCreate, BookUpdate, CategoryCreate, ProfileUpdate, SummaryCreate, SummaryUpdate
from ...security.auth import Caller, require_admin
from ...services import catalog, profiles

router = APIRouter()


def _parse(model: Type[BaseModel], raw: str):
    # multipart requests carry the JSON document in the "data" field
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False, include_context=False))


def _read_upload(cover: Optional[UploadFile]) -> Optional[catalog.Upload]:
    if cover is None:
        return None
    data = cover.file.read()
    return catalog.Upload(filename=cover.filename, data=data, content_type=cover.content_type)


@router.post("/books", status_code=201)
def create_book(
    data: str = Form(...),
    cover: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    payload = _parse(BookCreate, data)
    upload = _read_upload(cover)
    return catalog.create_book(db, caller, payload, upload).to_dict()


@router.patch("/books/{book_id}")
def update_book(
    book_id: int,
    data: str = Form("{}"),
    cover: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    payload = _parse(BookUpdate, data)
    upload = _read_upload(cover)
    return catalog.update_book(db, caller, book_id, payload, upload).to_dict()


@router.post("/summaries", status_code=201)
def create_summary(payload: SummaryCreate, db: Session = Depends(get_db), caller: Caller = Depends(require_admin)):
    return catalog.create_summary(db, caller, payload)


@router.patch("/summaries/{summary_id}")
def update_summary(
    summary_id: int,
    payload: SummaryUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return catalog.update_summary(db, caller, summary_id, payload)


@router.post("/summaries/{summary_id}/publish")
def publish(summary_id: int, db: Session = Depends(get_db), caller: Caller = Depends(require_admin)):
    return catalog.set_published(db, caller, summary_id, True)


@router.post("/summaries/{summary_id}/unpublish")
def unpublish(summary_id: int, db: Session = Depends(get_db), caller: Caller = Depends(require_admin)):
    return catalog.set_published(db, caller, summary_id, False)


@router.post("/categories", status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), caller: Caller = Depends(require_admin)):
    return catalog.create_category(db, caller, payload)


@router.patch("/users/{user_id}/profile")
def update_user_profile(
    user_id: str,
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return profiles.profile_to_dict(profiles.update_profile(db, caller, user_id, payload))
