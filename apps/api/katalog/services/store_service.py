"""Store setup helpers: vanity URL validation and lookup."""

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from katalog.models.store import Store

logger = logging.getLogger(__name__)

_ALLOWED_RE = re.compile(r"^[a-z0-9._]+$")
_DOUBLE_DOT_RE = re.compile(r"\.{2,}")
_UNDERSCORE_RUN_RE = re.compile(r"_{4,}")


class CustomURLError(ValueError):
    """Raised when a custom URL is malformed or already taken."""


def validate_custom_url(raw_value: str) -> str:
    """Normalize a custom URL, raising CustomURLError when it is not allowed.

    Returns:
        The lowercased slug.
    """
    value = raw_value.strip().lower()

    if not value:
        raise CustomURLError("Custom URL is required.")
    if not _ALLOWED_RE.match(value):
        raise CustomURLError(
            "Custom URL can only contain lowercase letters, numbers, dots, and underscores."
        )
    if _DOUBLE_DOT_RE.search(value):
        raise CustomURLError("Custom URL cannot contain consecutive dots.")
    if _UNDERSCORE_RUN_RE.search(value):
        raise CustomURLError("Custom URL cannot contain more than three underscores in a row.")
    if value in (".", "_"):
        raise CustomURLError("Custom URL cannot be a single dot or underscore.")

    return value


async def get_store_by_custom_url(db: AsyncSession, custom_url: str) -> Store | None:
    result = await db.execute(select(Store).where(Store.custom_url == custom_url.lower()))
    return result.scalar_one_or_none()


async def is_custom_url_available(
    db: AsyncSession,
    custom_url: str,
    *,
    exclude_owner_id: str | None = None,
) -> bool:
    """Check whether no other store uses the slug.

    Args:
        db: Database session.
        custom_url: Already validated slug.
        exclude_owner_id: Owner whose own store should not count as a clash.
    """
    store = await get_store_by_custom_url(db, custom_url)
    if store is None:
        return True
    return exclude_owner_id is not None and store.owner_id == exclude_owner_id


async def claim_custom_url(
    db: AsyncSession,
    raw_value: str,
    *,
    owner_id: str,
) -> str:
    """Validate a slug and make sure the owner may use it."""
    value = validate_custom_url(raw_value)
    if not await is_custom_url_available(db, value, exclude_owner_id=owner_id):
        logger.info("Custom URL already taken", extra={"custom_url": value})
        raise CustomURLError("This custom URL is already taken.")
    return value
