from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..models.models import Subscription, utcnow

ACTIVE_STATUSES = ("active", "trialing")


@dataclass(frozen=True)
class SubscriptionStatus:
    has_active_subscription: bool
    plan_name: Optional[str] = None
    status: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    days_remaining: int = 0

    def to_dict(self) -> dict:
        return {
            "has_active_subscription": self.has_active_subscription,
            "plan_name": self.plan_name,
            "status": self.status,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "cancel_at_period_end": self.cancel_at_period_end,
            "days_remaining": self.days_remaining,
        }


INACTIVE = SubscriptionStatus(has_active_subscription=False)


def get_subscription_status(db: Session, user_id: str, now: Optional[datetime] = None) -> SubscriptionStatus:
    now = now or utcnow()
    sub = (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.current_period_end.isnot(None))
        .order_by(Subscription.current_period_end.desc(), Subscription.id.desc())
        .first()
    )
    if not sub:
        return INACTIVE
    active = sub.status in ACTIVE_STATUSES and sub.current_period_end > now
    days = max(0, (sub.current_period_end - now).days) if active else 0
    return SubscriptionStatus(
        has_active_subscription=active,
        plan_name=sub.plan.name if sub.plan else None,
        status=sub.status,
        current_period_end=sub.current_period_end,
        cancel_at_period_end=bool(sub.cancel_at_period_end),
        days_remaining=days,
    )


def status_lookup_for(db: Session, now: Optional[datetime] = None) -> Callable[[str], SubscriptionStatus]:
    return lambda user_id: get_subscription_status(db, user_id, now=now)
