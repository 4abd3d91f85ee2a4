from datetime import datetime, timezone
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..db.base import Base


def utcnow() -> datetime:
    # naive UTC everywhere; the column types are timezone-less
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String(128), primary_key=True)  # identity provider uid
    email = Column(String(320), nullable=True, index=True)
    username = Column(String(64), nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    preferences = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class Author(Base):
    __tablename__ = "authors"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    bio = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    books = relationship("Book", back_populates="author")


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)
    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class BookCategory(Base):
    __tablename__ = "book_categories"
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True)


class Book(Base):
    __tablename__ = "books"
    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cover_image_url = Column(String(1024), nullable=True)
    author_id = Column(Integer, ForeignKey("authors.id", ondelete="SET NULL"), nullable=True)
    published_year = Column(Integer, nullable=True)
    isbn = Column(String(32), nullable=True)
    language = Column(String(16), nullable=False, default="en")
    page_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    author = relationship("Author", back_populates="books")
    categories = relationship("Category", secondary="book_categories", order_by="Category.id")
    summaries = relationship("Summary", back_populates="book")


class Summary(Base):
    __tablename__ = "summaries"
    id = Column(Integer, primary_key=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    text_content = Column(Text, nullable=False)
    reading_time = Column(Integer, nullable=False, default=15)  # minutes
    audio_url = Column(String(1024), nullable=True)
    audio_duration = Column(Integer, nullable=True)  # seconds
    is_premium = Column(Boolean, nullable=False, default=True)
    is_published = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    book = relationship("Book", back_populates="summaries")
    insights = relationship(
        "KeyInsight",
        back_populates="summary",
        order_by="KeyInsight.order_index",
        cascade="all, delete-orphan",
    )


class KeyInsight(Base):
    __tablename__ = "key_insights"
    id = Column(Integer, primary_key=True)
    summary_id = Column(Integer, ForeignKey("summaries.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    summary = relationship("Summary", back_populates="insights")


class ReadingHistory(Base):
    __tablename__ = "reading_history"
    __table_args__ = (UniqueConstraint("user_id", "summary_id", name="uq_reading_history_user_summary"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    summary_id = Column(Integer, ForeignKey("summaries.id", ondelete="CASCADE"), nullable=False)
    progress = Column(Float, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    last_read_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    summary = relationship("Summary")


class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "summary_id", name="uq_bookmarks_user_summary"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    summary_id = Column(Integer, ForeignKey("summaries.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    summary = relationship("Summary")


class Collection(Base):
    __tablename__ = "collections"
    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    items = relationship("CollectionItem", cascade="all, delete-orphan", order_by="CollectionItem.added_at")


class CollectionItem(Base):
    __tablename__ = "collection_items"
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True)
    summary_id = Column(Integer, ForeignKey("summaries.id", ondelete="CASCADE"), primary_key=True)
    added_at = Column(DateTime, default=utcnow, nullable=False)

    summary = relationship("Summary")


class Plan(Base):
    __tablename__ = "plans"
    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    price_monthly = Column(Float, nullable=False)
    price_yearly = Column(Float, nullable=False)
    features = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class Subscription(Base):
    __tablename__ = "subscriptions"
    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(32), nullable=False)
    payment_provider = Column(String(32), nullable=False, default="stripe")
    customer_id = Column(String(128), nullable=True, index=True)
    subscription_id = Column(String(128), nullable=True, unique=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    plan = relationship("Plan")


class WebhookEvent(Base):
    __tablename__ = "webhook_events"
    event_id = Column(String(128), primary_key=True)
    event_type = Column(String(64), nullable=False)
    received_at = Column(DateTime, default=utcnow, nullable=False)


class GenerationRequest(Base):
    __tablename__ = "generation_requests"
    id = Column(Integer, primary_key=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="SET NULL"), nullable=True)
    requested_by = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    source_url = Column(String(1024), nullable=True)
    source_text = Column(Text, nullable=True)
    settings = Column(JSON, nullable=True)
    result_summary_id = Column(Integer, ForeignKey("summaries.id", ondelete="SET NULL"), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    book = relationship("Book")
