import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..db.session import insert_for
from ..errors import NotAuthenticated, NotAuthorized, NotFound, ValidationError
from ..models.models import Profile, utcnow
from ..schemas import ProfileUpdate
from ..security.auth import Caller
from . import storage

logger = logging.getLogger(__name__)

AVATAR_TYPES = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp", "image/gif": "gif"}


def profile_to_dict(p: Profile) -> Dict[str, Any]:
    return {
        "id": p.id,
        "email": p.email,
        "username": p.username,
        "full_name": p.full_name,
        "avatar_url": p.avatar_url,
        "bio": p.bio,
        "preferences": p.preferences or {},
        "created_at": p.created_at.isoformat(),
        "updated_at": p.updated_at.isoformat(),
    }


def _default_username(caller: Caller) -> Optional[str]:
    if caller.email and "@" in caller.email:
        return caller.email.split("@", 1)[0]
    return None


def ensure_profile(
    db: Session, caller: Caller, username: Optional[str] = None, full_name: Optional[str] = None
) -> Profile:
    """Create the caller's profile on first sign-up; an existing one is returned untouched."""
    if caller.is_anonymous:
        raise NotAuthenticated()
    now = utcnow()
    stmt = insert_for(db, Profile).values(
        id=caller.uid,
        email=caller.email,
        username=username or _default_username(caller),
        full_name=full_name or caller.metadata.get("name"),
        avatar_url=caller.metadata.get("picture"),
        preferences={},
        created_at=now,
        updated_at=now,
    )
    created = db.execute(stmt.on_conflict_do_nothing(index_elements=[Profile.id]))
    db.commit()
    if created.rowcount:
        logger.info("created profile for %s", caller.uid)
    return db.get(Profile, caller.uid)


def get_profile(db: Session, caller: Caller, user_id: Optional[str] = None) -> Profile:
    if caller.is_anonymous:
        raise NotAuthenticated()
    target = user_id or caller.uid
    if target != caller.uid and not caller.is_admin:
        raise NotAuthorized()
    p = db.get(Profile, target)
    if not p:
        raise NotFound("Profile not found")
    return p


def update_profile(db: Session, caller: Caller, user_id: str, data: ProfileUpdate) -> Profile:
    p = get_profile(db, caller, user_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        if key == "username" and value is None:
            continue
        setattr(p, key, value)
    p.updated_at = utcnow()
    db.commit()
    db.refresh(p)
    return p


def upload_avatar(db: Session, caller: Caller, data: bytes, content_type: Optional[str]) -> Profile:
    p = get_profile(db, caller)
    if not data:
        raise ValidationError("The uploaded file is empty")
    ext = AVATAR_TYPES.get((content_type or "").lower())
    if ext is None:
        raise ValidationError("Avatar must be a JPEG, PNG, WebP or GIF image")
    # one object per user, replaced on every upload
    url = storage.upload_public(
        storage.AVATARS_BUCKET, f"{p.id}/avatar.{ext}", data, content_type, overwrite=True
    )
    p.avatar_url = url
    p.updated_at = utcnow()
    db.commit()
    db.refresh(p)
    logger.info("avatar updated for %s", p.id)
    return p
