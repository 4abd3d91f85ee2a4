import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_DISABLED", "false")

import unittest  # noqa: E402
from datetime import timedelta  # noqa: E402

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from apps.api.db.base import Base  # noqa: E402
from apps.api.db.session import create_sqlite_engine, get_db  # noqa: E402
from apps.api.models.models import (  # noqa: E402
    Author,
    Book,
    Category,
    KeyInsight,
    Plan,
    Profile,
    Subscription,
    Summary,
    utcnow,
)
from apps.api.security.auth import ANONYMOUS, Caller, get_current_caller  # noqa: E402

MEMBER = Caller(uid="reader-1", email="reader@example.com", role="member")
OTHER = Caller(uid="reader-2", email="other@example.com", role="member")
ADMIN = Caller(uid="admin-1", email="admin@example.com", role="admin")


class DBTestCase(unittest.TestCase):
    """Fresh in-memory SQLite database per test."""

    def setUp(self):
        self.engine = create_sqlite_engine()
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, future=True)
        self.db = self.Session()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def fresh(self):
        self.db.expire_all()
        return self.db

    # --- factories ---
    def make_category(self, name="Productivity", slug=None):
        c = Category(name=name, slug=slug or name.lower().replace(" ", "-"))
        self.db.add(c)
        self.db.commit()
        return c

    def make_book(self, title="Deep Work", author="Cal Newport", categories=()):
        a = None
        if author:
            a = Author(name=author)
            self.db.add(a)
        b = Book(title=title, author=a, published_year=2016)
        b.categories = list(categories)
        self.db.add(b)
        self.db.commit()
        return b

    def make_summary(
        self,
        book,
        title=None,
        published=True,
        premium=True,
        text="1. Focus is rare.\n2. Schedule deep work.",
        reading_time=15,
        audio_url=None,
        insights=("Focus", "Rituals"),
    ):
        s = Summary(
            book_id=book.id,
            title=title or f"Summary of {book.title}",
            text_content=text,
            reading_time=reading_time,
            audio_url=audio_url,
            is_premium=premium,
            is_published=published,
        )
        s.insights = [KeyInsight(title=t, content=f"{t} matters", order_index=i) for i, t in enumerate(insights)]
        self.db.add(s)
        self.db.commit()
        return s

    def make_profile(self, caller, **fields):
        p = Profile(id=caller.uid, email=caller.email, **fields)
        self.db.add(p)
        self.db.commit()
        return p

    def make_plan(self, name="Premium", monthly=9.99, yearly=99.99):
        p = Plan(name=name, price_monthly=monthly, price_yearly=yearly, features=["All summaries"])
        self.db.add(p)
        self.db.commit()
        return p

    def subscribe(self, caller, status="active", days=30, plan=None, subscription_id=None, customer_id=None):
        now = utcnow()
        sub = Subscription(
            user_id=caller.uid,
            plan_id=plan.id if plan else None,
            status=status,
            customer_id=customer_id,
            subscription_id=subscription_id,
            current_period_start=now - timedelta(days=1),
            current_period_end=now + timedelta(days=days),
        )
        self.db.add(sub)
        self.db.commit()
        return sub


class ApiTestCase(DBTestCase):
    """DBTestCase plus a TestClient wired to the test database."""

    def setUp(self):
        super().setUp()
        from apps.api.main import app

        self.app = app
        self.caller = ANONYMOUS

        def override_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_current_caller] = lambda: self.caller
        self.client = TestClient(app)

    def tearDown(self):
        self.app.dependency_overrides.clear()
        super().tearDown()

    def as_caller(self, caller):
        self.caller = caller
