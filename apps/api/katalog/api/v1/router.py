"""API v1 router combining all route modules."""

from fastapi import APIRouter

from katalog.api.v1 import (
    analytics,
    categories,
    consent,
    health,
    products,
    storefront,
    stores,
)

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Cookie consent for the calling device (no auth)
api_router.include_router(
    consent.router,
    prefix="/consent",
    tags=["consent"],
)

# Analytics (event ingestion is public, reads require auth)
api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["analytics"],
)

# Store setup and settings
api_router.include_router(
    stores.router,
    prefix="/stores",
    tags=["stores"],
)

# Category tree of the caller's store
api_router.include_router(
    categories.router,
    prefix="/categories",
    tags=["categories"],
)

# Products of the caller's store
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["products"],
)

# Public catalog pages (no auth)
api_router.include_router(
    storefront.router,
    prefix="/storefront",
    tags=["storefront"],
)
