from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import ProfileCreate, ProfileUpdate
from ...security.auth import Caller, require_caller
from ...services import profiles

router = APIRouter()


@router.get("")
def get_profile(db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return profiles.profile_to_dict(profiles.get_profile(db, caller))


@router.post("")
def create_profile(payload: ProfileCreate, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    p = profiles.ensure_profile(db, caller, username=payload.username, full_name=payload.full_name)
    return profiles.profile_to_dict(p)


@router.patch("")
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return profiles.profile_to_dict(profiles.update_profile(db, caller, caller.uid, payload))


@router.post("/avatar")
def upload_avatar(
    file: UploadFile = File(...), db: Session = Depends(get_db), caller: Caller = Depends(require_caller)
):
    p = profiles.upload_avatar(db, caller, file.file.read(), file.content_type)
    return profiles.profile_to_dict(p)
