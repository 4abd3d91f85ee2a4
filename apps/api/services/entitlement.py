"""Decides whether a caller may read a summary's premium content."""
import enum
from typing import Callable

from ..errors import NotAuthenticated, NotFound, SubscriptionRequired
from ..security.auth import Caller
from .subscriptions import SubscriptionStatus


class Access(str, enum.Enum):
    ALLOW = "allow"
    DENY_LOGIN = "deny_login"
    DENY_SUBSCRIPTION = "deny_subscription"
    DENY_NOT_FOUND = "deny_not_found"


def evaluate(caller: Caller, summary, status_lookup: Callable[[str], SubscriptionStatus]) -> Access:
    """Pure decision; `status_lookup` is consulted at most once."""
    if not summary.is_published:
        return Access.ALLOW if caller.is_admin else Access.DENY_NOT_FOUND
    if not summary.is_premium:
        return Access.ALLOW
    if caller.is_anonymous:
        return Access.DENY_LOGIN
    if status_lookup(caller.uid).has_active_subscription:
        return Access.ALLOW
    return Access.DENY_SUBSCRIPTION


def require_access(access: Access) -> None:
    if access is Access.ALLOW:
        return
    if access is Access.DENY_NOT_FOUND:
        raise NotFound("Summary not found")
    if access is Access.DENY_LOGIN:
        raise NotAuthenticated("Sign in to read premium summaries")
    raise SubscriptionRequired()
