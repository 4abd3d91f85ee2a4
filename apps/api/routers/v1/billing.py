from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ...db.session import get_db
from ...schemas import CheckoutIn
from ...security.auth import Caller, require_caller
from ...services import billing, payments
from ...services.subscriptions import get_subscription_status

router = APIRouter()


@router.get("/plans")
def plans(db: Session = Depends(get_db)):
    return {"items": billing.list_plans(db)}


@router.get("/status")
def status(db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return get_subscription_status(db, caller.uid).to_dict()


@router.post("/checkout")
def checkout(payload: CheckoutIn, db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return billing.create_checkout(db, caller, payload.plan_id, yearly=payload.yearly)


@router.post("/cancel")
def cancel(db: Session = Depends(get_db), caller: Caller = Depends(require_caller)):
    return billing.cancel_subscription(db, caller)


@router.post("/webhook")
async def webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()
    event = payments.construct_event(body, request.headers.get("stripe-signature"))
    applied = await run_in_threadpool(billing.handle_event, db, event)
    return {"received": True, "duplicate": not applied}
