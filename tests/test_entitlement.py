import unittest
from datetime import timedelta
from types import SimpleNamespace

from tests.helpers import ADMIN, MEMBER, DBTestCase

from apps.api.errors import NotAuthenticated, NotFound, SubscriptionRequired
from apps.api.models.models import utcnow
from apps.api.security.auth import ANONYMOUS
from apps.api.services.entitlement import Access, evaluate, require_access
from apps.api.services.subscriptions import INACTIVE, SubscriptionStatus, get_subscription_status


class CountingLookup:
    def __init__(self, active):
        self.active = active
        self.calls = []

    def __call__(self, user_id):
        self.calls.append(user_id)
        if self.active:
            return SubscriptionStatus(has_active_subscription=True, status="active")
        return INACTIVE


def summary(published=True, premium=True):
    return SimpleNamespace(is_published=published, is_premium=premium)


class EvaluateTests(unittest.TestCase):
    def test_unpublished_is_hidden_from_members(self):
        lookup = CountingLookup(active=True)
        self.assertIs(evaluate(MEMBER, summary(published=False), lookup), Access.DENY_NOT_FOUND)
        self.assertIs(evaluate(ANONYMOUS, summary(published=False), lookup), Access.DENY_NOT_FOUND)
        self.assertEqual(lookup.calls, [])

    def test_unpublished_is_visible_to_admins(self):
        self.assertIs(evaluate(ADMIN, summary(published=False), CountingLookup(False)), Access.ALLOW)

    def test_free_summary_allows_anyone_without_lookup(self):
        lookup = CountingLookup(active=False)
        self.assertIs(evaluate(ANONYMOUS, summary(premium=False), lookup), Access.ALLOW)
        self.assertIs(evaluate(MEMBER, summary(premium=False), lookup), Access.ALLOW)
        self.assertEqual(lookup.calls, [])

    def test_premium_requires_login(self):
        lookup = CountingLookup(active=True)
        self.assertIs(evaluate(ANONYMOUS, summary(), lookup), Access.DENY_LOGIN)
        self.assertEqual(lookup.calls, [])

    def test_premium_without_subscription(self):
        lookup = CountingLookup(active=False)
        self.assertIs(evaluate(MEMBER, summary(), lookup), Access.DENY_SUBSCRIPTION)
        self.assertEqual(lookup.calls, [MEMBER.uid])

    def test_premium_with_subscription(self):
        lookup = CountingLookup(active=True)
        self.assertIs(evaluate(MEMBER, summary(), lookup), Access.ALLOW)
        self.assertEqual(lookup.calls, [MEMBER.uid])

    def test_admin_still_needs_subscription_for_published_premium(self):
        self.assertIs(evaluate(ADMIN, summary(), CountingLookup(False)), Access.DENY_SUBSCRIPTION)

    def test_require_access_maps_denials(self):
        require_access(Access.ALLOW)
        with self.assertRaises(NotFound):
            require_access(Access.DENY_NOT_FOUND)
        with self.assertRaises(NotAuthenticated):
            require_access(Access.DENY_LOGIN)
        with self.assertRaises(SubscriptionRequired):
            require_access(Access.DENY_SUBSCRIPTION)


class SubscriptionStatusTests(DBTestCase):
    def test_no_rows_is_inactive(self):
        status = get_subscription_status(self.db, MEMBER.uid)
        self.assertFalse(status.has_active_subscription)
        self.assertEqual(status.days_remaining, 0)

    def test_active_and_trialing_count(self):
        plan = self.make_plan()
        self.subscribe(MEMBER, status="trialing", days=10, plan=plan)
        status = get_subscription_status(self.db, MEMBER.uid)
        self.assertTrue(status.has_active_subscription)
        self.assertEqual(status.plan_name, "Premium")
        self.assertIn(status.days_remaining, (9, 10))

    def test_expired_period_is_inactive(self):
        self.subscribe(MEMBER, status="active", days=-1)
        self.assertFalse(get_subscription_status(self.db, MEMBER.uid).has_active_subscription)

    def test_past_due_is_inactive(self):
        self.subscribe(MEMBER, status="past_due", days=10)
        status = get_subscription_status(self.db, MEMBER.uid)
        self.assertFalse(status.has_active_subscription)
        self.assertEqual(status.status, "past_due")

    def test_latest_period_end_wins(self):
        self.subscribe(MEMBER, status="active", days=5, subscription_id="sub_old")
        self.subscribe(MEMBER, status="canceled", days=40, subscription_id="sub_new")
        self.assertFalse(get_subscription_status(self.db, MEMBER.uid).has_active_subscription)

    def test_now_is_injectable(self):
        self.subscribe(MEMBER, status="active", days=5)
        later = utcnow() + timedelta(days=6)
        self.assertFalse(get_subscription_status(self.db, MEMBER.uid, now=later).has_active_subscription)


if __name__ == "__main__":
    unittest.main()
