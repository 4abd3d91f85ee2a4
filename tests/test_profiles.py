import unittest
from datetime import timedelta
from unittest.mock import patch

from tests.helpers import ADMIN, MEMBER, OTHER, DBTestCase

from apps.api.errors import NotAuthenticated, NotAuthorized, NotFound, UpstreamUnavailable, ValidationError
from apps.api.models.models import Profile, ReadingHistory, utcnow
from apps.api.schemas import CollectionCreate, ProfileUpdate
from apps.api.security.auth import ANONYMOUS
from apps.api.services import collections, dashboard, profiles, reading


class ProfileTests(DBTestCase):
    def test_ensure_profile_is_idempotent(self):
        p = profiles.ensure_profile(self.db, MEMBER)
        self.assertEqual(p.username, "reader")
        self.assertEqual(p.email, MEMBER.email)
        profiles.update_profile(self.db, MEMBER, MEMBER.uid, ProfileUpdate(username="bookworm"))
        again = profiles.ensure_profile(self.db, MEMBER, username="ignored")
        self.assertEqual(again.username, "bookworm")
        self.assertEqual(self.db.query(Profile).count(), 1)

    def test_ensure_profile_requires_login(self):
        with self.assertRaises(NotAuthenticated):
            profiles.ensure_profile(self.db, ANONYMOUS)

    def test_update_self_or_admin(self):
        self.make_profile(MEMBER)
        p = profiles.update_profile(self.db, MEMBER, MEMBER.uid, ProfileUpdate(bio="Reads a lot", preferences={"theme": "dark"}))
        self.assertEqual(p.bio, "Reads a lot")
        self.assertEqual(profiles.profile_to_dict(p)["preferences"], {"theme": "dark"})
        with self.assertRaises(NotAuthorized):
            profiles.update_profile(self.db, OTHER, MEMBER.uid, ProfileUpdate(bio="hacked"))
        p = profiles.update_profile(self.db, ADMIN, MEMBER.uid, ProfileUpdate(full_name="Reader One"))
        self.assertEqual(p.full_name, "Reader One")
        with self.assertRaises(NotFound):
            profiles.update_profile(self.db, ADMIN, "ghost", ProfileUpdate(bio="x"))

    def test_avatar_upload_overwrites_per_user_object(self):
        self.make_profile(MEMBER)
        with patch("apps.api.services.storage.upload_public", return_value="https://cdn/avatars/reader-1/avatar.png") as up:
            p = profiles.upload_avatar(self.db, MEMBER, b"img", "image/png")
        self.assertEqual(p.avatar_url, "https://cdn/avatars/reader-1/avatar.png")
        self.assertEqual(up.call_args.args[1], "reader-1/avatar.png")
        self.assertTrue(up.call_args.kwargs["overwrite"])

    def test_avatar_upload_failure_is_an_error(self):
        self.make_profile(MEMBER, avatar_url="https://cdn/old.png")
        with patch("apps.api.services.storage.upload_public", side_effect=UpstreamUnavailable("File upload failed")):
            with self.assertRaises(UpstreamUnavailable):
                profiles.upload_avatar(self.db, MEMBER, b"img", "image/png")
        self.assertEqual(self.fresh().get(Profile, MEMBER.uid).avatar_url, "https://cdn/old.png")

    def test_avatar_type_is_checked(self):
        self.make_profile(MEMBER)
        with self.assertRaises(ValidationError):
            profiles.upload_avatar(self.db, MEMBER, b"%PDF", "application/pdf")
        with self.assertRaises(ValidationError):
            profiles.upload_avatar(self.db, MEMBER, b"", "image/png")


class DashboardTests(DBTestCase):
    def setUp(self):
        super().setUp()
        self.focus = self.make_category("Productivity")
        self.other_cat = self.make_category("History")
        self.read = self.make_summary(self.make_book(title="Deep Work", categories=[self.focus]), reading_time=20)
        self.half = self.make_summary(self.make_book(title="Indistractable", author="Nir Eyal"), reading_time=10)
        self.suggested = self.make_summary(
            self.make_book(title="Essentialism", author="Greg McKeown", categories=[self.focus])
        )
        self.unrelated = self.make_summary(self.make_book(title="Sapiens", author="Yuval Harari", categories=[self.other_cat]))
        self.hidden = self.make_summary(
            self.make_book(title="Draft Focus", author="Someone", categories=[self.focus]), published=False
        )

    def test_dashboard_aggregates(self):
        reading.record_progress(self.db, MEMBER, self.read.id, 100)
        reading.record_progress(self.db, MEMBER, self.half.id, 50)
        reading.toggle_bookmark(self.db, MEMBER, self.half.id)
        collections.create_collection(self.db, MEMBER, CollectionCreate(name="Later"))

        data = dashboard.get_dashboard(self.db, MEMBER)
        self.assertEqual(data["profile"]["id"], MEMBER.uid)
        self.assertFalse(data["subscription"]["has_active_subscription"])
        self.assertEqual(len(data["reading_history"]), 2)
        self.assertEqual([b["summary"]["id"] for b in data["bookmarks"]], [self.half.id])
        self.assertEqual([c["name"] for c in data["collections"]], ["Later"])
        self.assertEqual([r["id"] for r in data["recommendations"]], [self.suggested.id])
        self.assertEqual(
            data["stats"],
            {"summaries_read": 1, "minutes_read": 20, "summaries_this_month": 1, "reading_time": 25},
        )

    def test_this_month_counts_only_current_month(self):
        reading.record_progress(self.db, MEMBER, self.read.id, 100)
        row = self.db.query(ReadingHistory).one()
        row.last_read_at = utcnow() - timedelta(days=40)
        self.db.commit()
        stats = dashboard.reading_stats(self.db, MEMBER.uid)
        self.assertEqual(stats["summaries_read"], 1)
        self.assertEqual(stats["summaries_this_month"], 0)

    def test_no_history_means_no_recommendations(self):
        self.assertEqual(dashboard.recommendations(self.db, MEMBER.uid), [])

    def test_requires_login(self):
        with self.assertRaises(NotAuthenticated):
            dashboard.get_dashboard(self.db, ANONYMOUS)


if __name__ == "__main__":
    unittest.main()
