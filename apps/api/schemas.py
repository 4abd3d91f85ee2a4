from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    # unknown fields are rejected at the boundary
    model_config = ConfigDict(extra="forbid")


# =========================
# Reading
# =========================
class ProgressIn(StrictModel):
    summary_id: int
    progress: float


class BookmarkIn(StrictModel):
    summary_id: int


# =========================
# Collections
# =========================
class CollectionCreate(StrictModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: bool = False


class CollectionUpdate(StrictModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: Optional[bool] = None


class CollectionItemIn(StrictModel):
    summary_id: int


# =========================
# Admin catalog
# =========================
class BookCreate(StrictModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    author_name: Optional[str] = Field(default=None, max_length=255)
    published_year: Optional[int] = Field(default=None, ge=0, le=9999)
    isbn: Optional[str] = Field(default=None, max_length=32)
    language: str = Field(default="en", min_length=2, max_length=16)
    page_count: Optional[int] = Field(default=None, ge=1)
    category_ids: List[int] = Field(default_factory=list)


class BookUpdate(StrictModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    author_name: Optional[str] = Field(default=None, max_length=255)
    published_year: Optional[int] = Field(default=None, ge=0, le=9999)
    isbn: Optional[str] = Field(default=None, max_length=32)
    language: Optional[str] = Field(default=None, min_length=2, max_length=16)
    page_count: Optional[int] = Field(default=None, ge=1)
    category_ids: Optional[List[int]] = None


class KeyInsightIn(StrictModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)


class SummaryCreate(StrictModel):
    book_id: int
    title: str = Field(min_length=1, max_length=255)
    subtitle: Optional[str] = Field(default=None, max_length=255)
    text_content: str = Field(min_length=1)
    reading_time: int = Field(default=15, ge=1, le=600)
    audio_url: Optional[str] = None
    audio_duration: Optional[int] = Field(default=None, ge=0)
    is_premium: bool = True
    key_insights: List[KeyInsightIn] = Field(default_factory=list)


class SummaryUpdate(StrictModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    subtitle: Optional[str] = Field(default=None, max_length=255)
    text_content: Optional[str] = Field(default=None, min_length=1)
    reading_time: Optional[int] = Field(default=None, ge=1, le=600)
    audio_url: Optional[str] = None
    audio_duration: Optional[int] = Field(default=None, ge=0)
    is_premium: Optional[bool] = None
    key_insights: Optional[List[KeyInsightIn]] = None


class CategoryCreate(StrictModel):
    name: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = None


# =========================
# Generation
# =========================
class GenerationSettings(StrictModel):
    reading_time: int = Field(default=15, ge=1, le=120)


class GenerationCreate(StrictModel):
    book_id: int
    source_text: Optional[str] = None
    source_url: Optional[str] = Field(default=None, max_length=1024)
    settings: GenerationSettings = Field(default_factory=GenerationSettings)


# =========================
# Billing
# =========================
class CheckoutIn(StrictModel):
    plan_id: int
    yearly: bool = False


# =========================
# Profile
# =========================
class ProfileCreate(StrictModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    full_name: Optional[str] = Field(default=None, max_length=255)


class ProfileUpdate(StrictModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    full_name: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = None
    preferences: Optional[dict] = None


# =========================
# Search
# =========================
class SearchIn(StrictModel):
    query: Optional[str] = Field(default=None, max_length=200)
    category_ids: List[int] = Field(default_factory=list)
    reading_time_max: Optional[int] = Field(default=None, ge=1)
    audio_only: bool = False
    include_premium: bool = True
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
