import unittest
from unittest.mock import patch

from tests.helpers import ADMIN, MEMBER, DBTestCase

from apps.api.errors import NotAuthorized, NotFound, UpstreamUnavailable, ValidationError
from apps.api.models.models import Author, Book, KeyInsight, Summary
from apps.api.schemas import BookCreate, BookUpdate, CategoryCreate, KeyInsightIn, SummaryCreate, SummaryUpdate
from apps.api.services import catalog, content


class CreateBookTests(DBTestCase):
    def test_author_is_reused_case_and_space_insensitive(self):
        self.make_book(title="Digital Minimalism", author="Cal Newport")
        result = catalog.create_book(self.db, ADMIN, BookCreate(title="Deep Work", author_name="  cal   NEWPORT "))
        self.assertEqual(result.warnings, [])
        self.assertEqual(self.db.query(Author).count(), 1)
        self.assertEqual(result.book["author_name"], "Cal Newport")

    def test_new_author_is_created(self):
        result = catalog.create_book(self.db, ADMIN, BookCreate(title="Atomic Habits", author_name="James Clear"))
        self.assertEqual(result.book["author_name"], "James Clear")
        self.assertEqual(self.db.query(Author).count(), 1)

    def test_cover_is_uploaded(self):
        cover = catalog.Upload(filename="cover.PNG", data=b"png-bytes", content_type="image/png")
        with patch("apps.api.services.storage.upload_public", return_value="https://cdn/covers/x.png") as up:
            result = catalog.create_book(self.db, ADMIN, BookCreate(title="Deep Work"), cover)
        self.assertEqual(result.book["cover_image_url"], "https://cdn/covers/x.png")
        bucket, path, data, content_type = up.call_args.args
        self.assertTrue(path.startswith("covers/") and path.endswith(".png"))
        self.assertEqual(data, b"png-bytes")

    def test_failed_cover_upload_still_creates_book(self):
        cover = catalog.Upload(filename="cover.jpg", data=b"jpg", content_type="image/jpeg")
        with patch("apps.api.services.storage.upload_public", side_effect=UpstreamUnavailable()):
            result = catalog.create_book(self.db, ADMIN, BookCreate(title="Deep Work", author_name="Cal Newport"), cover)
        self.assertEqual(result.warnings, [catalog.COVER_UPLOAD_FAILED])
        self.assertIsNone(result.book["cover_image_url"])
        self.assertEqual(self.db.query(Book).count(), 1)

    def test_categories_are_linked(self):
        a = self.make_category("Productivity")
        b = self.make_category("Psychology")
        result = catalog.create_book(self.db, ADMIN, BookCreate(title="Deep Work", category_ids=[b.id, a.id, b.id]))
        self.assertEqual(sorted(result.book["category_ids"]), sorted([a.id, b.id]))

    def test_unknown_category_rejects_whole_create(self):
        with self.assertRaises(ValidationError):
            catalog.create_book(self.db, ADMIN, BookCreate(title="Deep Work", author_name="Cal Newport", category_ids=[77]))
        self.assertEqual(self.db.query(Book).count(), 0)
        self.assertEqual(self.db.query(Author).count(), 0)

    def test_members_cannot_create(self):
        with self.assertRaises(NotAuthorized):
            catalog.create_book(self.db, MEMBER, BookCreate(title="Deep Work"))

    def test_published_year_defaults_to_current_year(self):
        result = catalog.create_book(self.db, ADMIN, BookCreate(title="Deep Work"))
        self.assertIsNotNone(result.book["published_year"])


class UpdateBookTests(DBTestCase):
    def test_partial_update(self):
        book = self.make_book()
        result = catalog.update_book(self.db, ADMIN, book.id, BookUpdate(description="Rules for focus"))
        self.assertEqual(result.book["description"], "Rules for focus")
        self.assertEqual(result.book["title"], "Deep Work")
        self.assertEqual(result.book["author_name"], "Cal Newport")

    def test_missing_book(self):
        with self.assertRaises(NotFound):
            catalog.update_book(self.db, ADMIN, 404, BookUpdate(title="x"))

    def test_null_required_field_is_rejected(self):
        book = self.make_book()
        cover = catalog.Upload(filename="cover.jpg", data=b"jpg", content_type="image/jpeg")
        for payload in ({"language": None}, {"title": None}):
            with patch("apps.api.services.storage.upload_public") as up:
                with self.assertRaises(ValidationError):
                    catalog.update_book(self.db, ADMIN, book.id, BookUpdate(**payload), cover)
            up.assert_not_called()
        book = self.fresh().get(Book, book.id)
        self.assertEqual(book.language, "en")
        self.assertEqual(book.title, "Deep Work")


class SummaryTests(DBTestCase):
    def setUp(self):
        super().setUp()
        self.book = self.make_book()

    def test_create_summary_starts_unpublished(self):
        data = SummaryCreate(
            book_id=self.book.id,
            title="Deep Work in 15 minutes",
            text_content="Focus.",
            key_insights=[KeyInsightIn(title="One", content="a"), KeyInsightIn(title="Two", content="b")],
        )
        item = catalog.create_summary(self.db, ADMIN, data)
        self.assertFalse(item["is_published"])
        self.assertTrue(item["is_premium"])
        self.assertEqual(item["version"], 1)
        self.assertEqual([k["title"] for k in item["key_insights"]], ["One", "Two"])
        self.assertEqual([k["order_index"] for k in item["key_insights"]], [0, 1])

    def test_create_summary_for_missing_book(self):
        with self.assertRaises(NotFound):
            catalog.create_summary(self.db, ADMIN, SummaryCreate(book_id=999, title="x", text_content="y"))

    def test_update_bumps_version_and_replaces_insights(self):
        s = self.make_summary(self.book)
        item = catalog.update_summary(
            self.db, ADMIN, s.id, SummaryUpdate(subtitle="New", key_insights=[KeyInsightIn(title="Only", content="c")])
        )
        self.assertEqual(item["version"], 2)
        self.assertEqual(item["subtitle"], "New")
        self.assertEqual([k["title"] for k in item["key_insights"]], ["Only"])
        self.assertEqual(self.db.query(KeyInsight).count(), 1)

    def test_publish_and_unpublish(self):
        s = self.make_summary(self.book, published=False)
        self.assertTrue(catalog.set_published(self.db, ADMIN, s.id, True)["is_published"])
        self.assertFalse(catalog.set_published(self.db, ADMIN, s.id, False)["is_published"])
        with self.assertRaises(NotAuthorized):
            catalog.set_published(self.db, MEMBER, s.id, True)
        with self.assertRaises(NotFound):
            catalog.set_published(self.db, ADMIN, 12345, True)


class CategoryTests(DBTestCase):
    def test_slug_is_derived_and_unique(self):
        item = catalog.create_category(self.db, ADMIN, CategoryCreate(name="Personal Growth"))
        self.assertEqual(item["slug"], "personal-growth")
        with self.assertRaises(ValidationError):
            catalog.create_category(self.db, ADMIN, CategoryCreate(name="Personal  growth!"))

    def test_unknown_parent(self):
        with self.assertRaises(ValidationError):
            catalog.create_category(self.db, ADMIN, CategoryCreate(name="Habits", parent_id=50))


class ReadPathTests(DBTestCase):
    def test_summary_view_hides_body_without_access(self):
        s = self.make_summary(self.make_book())
        item = content.get_summary_view(self.db, s.id, MEMBER)
        self.assertEqual(item["access"], "deny_subscription")
        self.assertNotIn("content", item)
        self.assertNotIn("key_insights", item)

    def test_summary_view_with_subscription(self):
        s = self.make_summary(self.make_book())
        self.subscribe(MEMBER)
        item = content.get_summary_view(self.db, s.id, MEMBER)
        self.assertEqual(item["access"], "allow")
        self.assertEqual([k["order_index"] for k in item["key_insights"]], [0, 1])

    def test_draft_is_not_found(self):
        s = self.make_summary(self.make_book(), published=False)
        with self.assertRaises(NotFound):
            content.get_summary_view(self.db, s.id, MEMBER)

    def test_book_lists_only_published_summaries(self):
        book = self.make_book()
        self.make_summary(book, title="Live")
        self.make_summary(book, title="Draft", published=False)
        item = content.get_book(self.db, book.id, MEMBER)
        self.assertEqual([s["title"] for s in item["summaries"]], ["Live"])

    def test_placeholders_for_missing_cover_and_author(self):
        s = self.make_summary(self.make_book(author=None))
        meta = content.summary_meta(self.db.get(Summary, s.id))
        self.assertEqual(meta["book"]["cover_image_url"], content.PLACEHOLDER_COVER)
        self.assertEqual(meta["book"]["author_name"], content.UNKNOWN_AUTHOR)

    def test_list_books_filters(self):
        cat = self.make_category()
        self.make_book(title="Deep Work", categories=[cat])
        self.make_book(title="Atomic Habits", author="James Clear")
        self.assertEqual(content.list_books(self.db, q="newport")["total"], 1)
        self.assertEqual(content.list_books(self.db, category_id=cat.id)["items"][0]["title"], "Deep Work")
        self.assertEqual(content.list_books(self.db, author="clear")["total"], 1)


if __name__ == "__main__":
    unittest.main()
