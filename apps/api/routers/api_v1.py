from fastapi import APIRouter

from .v1 import (
    admin,
    billing,
    bookmarks,
    books,
    categories,
    collections,
    dashboard,
    generate,
    profile,
    progress,
    search,
    summaries,
)

router = APIRouter()

router.include_router(categories.router, prefix="/categories", tags=["categories"])
router.include_router(books.router, prefix="/books", tags=["books"])
router.include_router(summaries.router, prefix="/summaries", tags=["summaries"])
router.include_router(search.router, prefix="/search", tags=["search"])
router.include_router(progress.router, prefix="/progress", tags=["progress"])
router.include_router(bookmarks.router, prefix="/bookmarks", tags=["bookmarks"])
router.include_router(collections.router, prefix="/collections", tags=["collections"])
router.include_router(profile.router, prefix="/profile", tags=["profile"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(billing.router, prefix="/billing", tags=["billing"])
router.include_router(generate.router, prefix="/generate", tags=["generate"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
