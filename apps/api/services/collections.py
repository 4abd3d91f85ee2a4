import logging
from typing import Any, Dict, List

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..db.session import insert_for
from ..errors import NotAuthenticated, NotAuthorized, NotFound
from ..models.models import Collection, CollectionItem, Summary, utcnow
from ..schemas import CollectionCreate, CollectionUpdate
from ..security.auth import Caller
from . import content

logger = logging.getLogger(__name__)


def _require_user(caller: Caller) -> str:
    if caller.is_anonymous:
        raise NotAuthenticated()
    return caller.uid


def collection_to_dict(c: Collection, with_items: bool = False) -> Dict[str, Any]:
    item = {
        "id": c.id,
        "user_id": c.user_id,
        "name": c.name,
        "description": c.description,
        "is_public": bool(c.is_public),
        "item_count": len(c.items),
        "created_at": c.created_at.isoformat(),
        "updated_at": c.updated_at.isoformat(),
    }
    if with_items:
        item["items"] = [
            {"added_at": i.added_at.isoformat(), "summary": content.summary_meta(i.summary)}
            for i in c.items
            if i.summary is not None and i.summary.is_published
        ]
    return item


def _visible(db: Session, caller: Caller, collection_id: int) -> Collection:
    c = db.get(Collection, collection_id)
    if not c or not (c.is_public or c.user_id == caller.uid):
        raise NotFound("Collection not found")
    return c


def _owned(db: Session, caller: Caller, collection_id: int) -> Collection:
    _require_user(caller)
    c = _visible(db, caller, collection_id)
    if c.user_id != caller.uid:
        raise NotAuthorized("Only the owner can change this collection")
    return c


def create_collection(db: Session, caller: Caller, data: CollectionCreate) -> Dict[str, Any]:
    user_id = _require_user(caller)
    c = Collection(user_id=user_id, name=data.name.strip(), description=data.description, is_public=data.is_public)
    db.add(c)
    db.commit()
    db.refresh(c)
    return collection_to_dict(c)


def list_collections(db: Session, caller: Caller) -> List[Dict[str, Any]]:
    user_id = _require_user(caller)
    rows = (
        db.query(Collection)
        .filter(Collection.user_id == user_id)
        .order_by(Collection.updated_at.desc(), Collection.id.desc())
        .all()
    )
    return [collection_to_dict(c) for c in rows]


def get_collection(db: Session, caller: Caller, collection_id: int) -> Dict[str, Any]:
    return collection_to_dict(_visible(db, caller, collection_id), with_items=True)


def update_collection(db: Session, caller: Caller, collection_id: int, data: CollectionUpdate) -> Dict[str, Any]:
    c = _owned(db, caller, collection_id)
    fields = data.model_dump(exclude_unset=True)
    for key, value in fields.items():
        if value is None and key in ("name", "is_public"):
            continue
        setattr(c, key, value.strip() if key == "name" else value)
    c.updated_at = utcnow()
    db.commit()
    db.refresh(c)
    return collection_to_dict(c)


def delete_collection(db: Session, caller: Caller, collection_id: int) -> None:
    c = _owned(db, caller, collection_id)
    db.delete(c)
    db.commit()
    logger.info("collection id=%s deleted by %s", collection_id, caller.uid)


def add_item(db: Session, caller: Caller, collection_id: int, summary_id: int) -> Dict[str, Any]:
    c = _owned(db, caller, collection_id)
    s = db.get(Summary, summary_id)
    if not s or not s.is_published:
        raise NotFound("Summary not found")
    stmt = insert_for(db, CollectionItem).values(collection_id=c.id, summary_id=summary_id, added_at=utcnow())
    db.execute(stmt.on_conflict_do_nothing(index_elements=[CollectionItem.collection_id, CollectionItem.summary_id]))
    c.updated_at = utcnow()
    db.commit()
    db.refresh(c)
    return collection_to_dict(c, with_items=True)


def remove_item(db: Session, caller: Caller, collection_id: int, summary_id: int) -> Dict[str, Any]:
    c = _owned(db, caller, collection_id)
    db.execute(
        delete(CollectionItem)
        .where(CollectionItem.collection_id == c.id, CollectionItem.summary_id == summary_id)
        .execution_options(synchronize_session=False)
    )
    c.updated_at = utcnow()
    db.commit()
    db.refresh(c)
    return collection_to_dict(c, with_items=True)
