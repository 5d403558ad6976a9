"""Cookie consent store for a single device."""

import json
import logging
from typing import Any

from pydantic import ValidationError
from redis.exceptions import RedisError

from katalog.schemas.consent import (
    DEFAULT_CONSENT_CATEGORIES,
    Consent,
    ConsentCategories,
    CookieCategory,
)
from katalog.services.device_storage import (
    CONSENT_KEY,
    CONSENT_SETTINGS_KEY,
    DeviceStorage,
)

logger = logging.getLogger(__name__)


class ConsentStore:
    """Reads and writes the visitor's cookie choice in device storage.

    The top-level choice overrides the granular toggles: ``accepted`` allows
    every category, ``declined`` blocks every non-necessary one. Only while
    the choice is unset do the stored toggles decide.
    """

    def __init__(self, storage: DeviceStorage) -> None:
        self.storage = storage

    async def get_consent(self) -> Consent:
        try:
            raw = await self.storage.get_item(CONSENT_KEY)
        except RedisError:
            logger.warning("Device storage unavailable, consent treated as unset")
            return Consent.UNSET

        if raw in (Consent.ACCEPTED.value, Consent.DECLINED.value):
            return Consent(raw)
        return Consent.UNSET

    async def get_settings(self) -> ConsentCategories:
        """Stored toggles merged over the defaults; defaults on any failure."""
        try:
            raw = await self.storage.get_item(CONSENT_SETTINGS_KEY)
        except RedisError:
            logger.warning("Device storage unavailable, using default consent settings")
            return DEFAULT_CONSENT_CATEGORIES.model_copy()

        if not raw:
            return DEFAULT_CONSENT_CATEGORIES.model_copy()

        try:
            stored: Any = json.loads(raw)
            if not isinstance(stored, dict):
                raise ValueError("cookie settings must be a JSON object")
            merged = {**DEFAULT_CONSENT_CATEGORIES.model_dump(), **stored}
            return ConsentCategories.model_validate(merged)
        except (ValueError, ValidationError):
            return DEFAULT_CONSENT_CATEGORIES.model_copy()

    async def save_settings(self, categories: ConsentCategories) -> None:
        """Store the toggles verbatim."""
        try:
            await self.storage.set_item(
                CONSENT_SETTINGS_KEY, json.dumps(categories.model_dump())
            )
        except RedisError:
            logger.warning("Device storage unavailable, consent settings not saved")

    async def set_consent(self, consent: Consent) -> None:
        """Record the banner choice along with matching toggles."""
        if consent is Consent.UNSET:
            await self.reset()
            return

        if consent is Consent.ACCEPTED:
            categories = ConsentCategories(analytics=True, functional=True, preferences=True)
        else:
            categories = DEFAULT_CONSENT_CATEGORIES.model_copy()

        try:
            await self.storage.set_item(CONSENT_KEY, consent.value)
        except RedisError:
            logger.warning("Device storage unavailable, consent not saved")
            return
        await self.save_settings(categories)

    async def is_allowed(self, category: CookieCategory) -> bool:
        if category == "necessary":
            return True

        consent = await self.get_consent()
        if consent is Consent.ACCEPTED:
            return True
        if consent is Consent.DECLINED:
            return False

        settings = await self.get_settings()
        return bool(getattr(settings, category))

    async def reset(self) -> None:
        """Forget the choice entirely so the banner shows again."""
        try:
            await self.storage.remove_item(CONSENT_KEY)
            await self.storage.remove_item(CONSENT_SETTINGS_KEY)
        except RedisError:
            logger.warning("Device storage unavailable, consent not reset")
