"""Plans, checkout, cancellation and the payment webhook relay."""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.session import insert_for
from ..errors import NotAuthenticated, NotFound, ServiceError, UpstreamUnavailable, ValidationError
from ..models.models import Plan, Profile, Subscription, WebhookEvent, utcnow
from ..security.auth import Caller
from .payments import PaymentClient, get_payment_client
from .subscriptions import ACTIVE_STATUSES, get_subscription_status

logger = logging.getLogger(__name__)


def _ts(value) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def plan_to_dict(p: Plan) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price_monthly": p.price_monthly,
        "price_yearly": p.price_yearly,
        "features": p.features or [],
    }


def list_plans(db: Session) -> List[Dict[str, Any]]:
    rows = db.query(Plan).filter(Plan.is_active.is_(True)).order_by(Plan.price_monthly.asc()).all()
    return [plan_to_dict(p) for p in rows]


def _latest_subscription(db: Session, user_id: str, active_only: bool = False) -> Optional[Subscription]:
    q = db.query(Subscription).filter(Subscription.user_id == user_id)
    if active_only:
        q = q.filter(Subscription.status.in_(ACTIVE_STATUSES))
    return q.order_by(Subscription.current_period_end.desc(), Subscription.id.desc()).first()


def create_checkout(
    db: Session, caller: Caller, plan_id: int, yearly: bool = False, client: Optional[PaymentClient] = None
) -> Dict[str, Any]:
    if caller.is_anonymous:
        raise NotAuthenticated()
    plan = db.get(Plan, plan_id)
    if not plan or not plan.is_active:
        raise NotFound("Plan not found")
    client = client or get_payment_client()
    existing = _latest_subscription(db, caller.uid)
    customer_id = existing.customer_id if existing and existing.customer_id else None
    if not customer_id:
        profile = db.get(Profile, caller.uid)
        name = (profile.full_name or profile.username) if profile else None
        customer_id = client.create_customer(caller.email or (profile.email if profile else None), name, caller.uid)
    session = client.create_checkout_session(
        customer_id,
        plan.id,
        plan.name,
        plan.price_yearly if yearly else plan.price_monthly,
        "year" if yearly else "month",
        caller.uid,
    )
    logger.info("checkout session for user=%s plan=%s yearly=%s", caller.uid, plan.id, yearly)
    return {"url": session.get("url"), "session_id": session.get("id")}


def cancel_subscription(db: Session, caller: Caller, client: Optional[PaymentClient] = None) -> Dict[str, Any]:
    if caller.is_anonymous:
        raise NotAuthenticated()
    sub = _latest_subscription(db, caller.uid, active_only=True)
    if not sub or not sub.subscription_id:
        raise NotFound("No active subscription found")
    client = client or get_payment_client()
    client.cancel_at_period_end(sub.subscription_id)
    sub.cancel_at_period_end = True
    sub.updated_at = utcnow()
    db.commit()
    logger.info("subscription %s set to cancel at period end", sub.subscription_id)
    return {
        "message": "Subscription will be canceled at the end of the current billing period.",
        "status": get_subscription_status(db, caller.uid).to_dict(),
    }


# =========================
# Webhook relay
# =========================
class _Relay:
    def __init__(self, db: Session, client_factory: Callable[[], PaymentClient]):
        self.db = db
        self._client_factory = client_factory
        self._client = None

    @property
    def client(self) -> PaymentClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def _by_external_id(self, subscription_id: str) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(Subscription.subscription_id == subscription_id).one_or_none()

    def _resolve_user(self, obj: Dict[str, Any]) -> str:
        customer_id = obj.get("customer")
        if customer_id:
            known = (
                self.db.query(Subscription.user_id)
                .filter(Subscription.customer_id == customer_id)
                .first()
            )
            if known:
                return known.user_id
        user_id = (obj.get("metadata") or {}).get("user_id")
        if user_id:
            return user_id
        if customer_id:
            customer = self.client.retrieve_customer(customer_id)
            email = customer.get("email") if not customer.get("deleted") else None
            if email:
                profile = self.db.query(Profile).filter(Profile.email == email).first()
                if profile:
                    return profile.id
        raise NotFound("No user found for this subscription")

    def _resolve_plan_id(self, obj: Dict[str, Any]) -> Optional[int]:
        meta_plan = (obj.get("metadata") or {}).get("plan_id")
        if meta_plan is not None and str(meta_plan).isdigit():
            plan = self.db.get(Plan, int(meta_plan))
            if plan:
                return plan.id
        items = ((obj.get("items") or {}).get("data")) or []
        product = ((items[0].get("price") or {}).get("product")) if items else None
        name = product.get("name") if isinstance(product, dict) else None
        if name:
            plan = self.db.query(Plan).filter(Plan.name == name).first()
            if plan:
                return plan.id
        return None

    def _external_id(self, obj: Dict[str, Any]) -> str:
        external_id = obj.get("id")
        if not external_id:
            raise ValidationError("Malformed webhook event")
        return external_id

    def subscription_changed(self, obj: Dict[str, Any]) -> None:
        external_id = self._external_id(obj)
        sub = self._by_external_id(external_id)
        plan_id = self._resolve_plan_id(obj)
        if sub is None:
            sub = Subscription(
                user_id=self._resolve_user(obj),
                subscription_id=external_id,
                payment_provider="stripe",
            )
            self.db.add(sub)
        if plan_id is not None:
            sub.plan_id = plan_id
        elif sub.plan_id is None:
            logger.warning("no plan matched subscription %s", external_id)
        sub.customer_id = obj.get("customer") or sub.customer_id
        sub.status = obj.get("status") or sub.status or "incomplete"
        sub.current_period_start = _ts(obj.get("current_period_start")) or sub.current_period_start
        sub.current_period_end = _ts(obj.get("current_period_end")) or sub.current_period_end
        sub.cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
        sub.updated_at = utcnow()

    def subscription_deleted(self, obj: Dict[str, Any]) -> None:
        external_id = self._external_id(obj)
        sub = self._by_external_id(external_id)
        if sub is None:
            logger.info("deleted subscription %s is unknown; ignoring", external_id)
            return
        sub.status = "canceled"
        sub.updated_at = utcnow()

    def payment_succeeded(self, obj: Dict[str, Any]) -> None:
        external_id = obj.get("subscription")
        sub = self._by_external_id(external_id) if external_id else None
        if sub is None:
            return
        lines = ((obj.get("lines") or {}).get("data")) or []
        period = (lines[0].get("period") or {}) if lines else {}
        if period.get("start") and period.get("end"):
            sub.current_period_start = _ts(period["start"])
            sub.current_period_end = _ts(period["end"])
        else:
            remote = self.client.retrieve_subscription(external_id)
            sub.current_period_start = _ts(remote.get("current_period_start")) or sub.current_period_start
            sub.current_period_end = _ts(remote.get("current_period_end")) or sub.current_period_end
        sub.status = "active"
        sub.updated_at = utcnow()

    def payment_failed(self, obj: Dict[str, Any]) -> None:
        external_id = obj.get("subscription")
        sub = self._by_external_id(external_id) if external_id else None
        if sub is None:
            return
        sub.status = "past_due"
        sub.updated_at = utcnow()


_HANDLERS = {
    "customer.subscription.created": _Relay.subscription_changed,
    "customer.subscription.updated": _Relay.subscription_changed,
    "customer.subscription.deleted": _Relay.subscription_deleted,
    "invoice.payment_succeeded": _Relay.payment_succeeded,
    "invoice.payment_failed": _Relay.payment_failed,
}


def handle_event(
    db: Session, event: Dict[str, Any], client_factory: Callable[[], PaymentClient] = get_payment_client
) -> bool:
    """Apply one provider event. Returns False when the event id was already processed."""
    event_id = event.get("id")
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object")
    if not event_id or not event_type or not isinstance(obj, dict):
        raise ValidationError("Malformed webhook event")

    try:
        # the marker row commits together with the change, so a failed
        # delivery can be replayed
        marker = insert_for(db, WebhookEvent).values(event_id=event_id, event_type=event_type, received_at=utcnow())
        inserted = db.execute(marker.on_conflict_do_nothing(index_elements=[WebhookEvent.event_id]))
        if not inserted.rowcount:
            db.rollback()
            logger.info("webhook event %s already processed", event_id)
            return False
        handler = _HANDLERS.get(event_type)
        if handler is None:
            logger.info("webhook event %s of type %s ignored", event_id, event_type)
        else:
            handler(_Relay(db, client_factory), obj)
        db.commit()
    except ServiceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("webhook event %s could not be stored", event_id, exc_info=True)
        raise UpstreamUnavailable("Could not record the payment event") from e
    logger.info("webhook event %s (%s) applied", event_id, event_type)
    return True
