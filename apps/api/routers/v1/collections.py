from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import CollectionCreate, CollectionItemIn, CollectionUpdate
from ...security.auth import Caller, get_current_caller, require_caller
from ...services import collections

router = APIRouter()


@router.post("", status_code=201)
def create(payload: CollectionCreate, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return collections.create_collection(db, caller, payload)


@router.get("")
def list_own(db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return {"items": collections.list_collections(db, caller)}


@router.get("/{collection_id}")
def get_one(collection_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_current_caller)):
    return collections.get_collection(db, caller, collection_id)


@router.patch("/{collection_id}")
def update(
    collection_id: int,
    payload: CollectionUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_caller),
):
    return collections.update_collection(db, caller, collection_id, payload)


@router.delete("/{collection_id}", status_code=204)
def delete(collection_id: int, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    collections.delete_collection(db, caller, collection_id)
    return Response(status_code=204)


@router.post("/{collection_id}/items")
def add_item(
    collection_id: int,
    payload: CollectionItemIn,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_caller),
):
    return collections.add_item(db, caller, collection_id, payload.summary_id)


@router.delete("/{collection_id}/items/{summary_id}")
def remove_item(
    collection_id: int, summary_id: int, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)
):
    return collections.remove_item(db, caller, collection_id, summary_id)
