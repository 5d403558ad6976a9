"""Cookie consent Pydantic schemas."""

import enum
from typing import Literal

from pydantic import Field

from katalog.schemas.common import BaseSchema


class Consent(str, enum.Enum):
    """The visitor's top-level cookie choice."""

    ACCEPTED = "accepted"
    DECLINED = "declined"
    UNSET = "unset"


CookieCategory = Literal["necessary", "analytics", "functional", "preferences"]


class ConsentCategories(BaseSchema):
    """Granular cookie category toggles.

    ``necessary`` is required for the site to work and is always on.
    """

    necessary: bool = True
    analytics: bool = False
    functional: bool = False
    preferences: bool = False


DEFAULT_CONSENT_CATEGORIES = ConsentCategories()


class ConsentResponse(BaseSchema):
    """Current consent state for a device, with the effective permissions."""

    consent: Consent
    settings: ConsentCategories
    allowed: dict[str, bool]
    show_banner: bool


class ConsentUpdate(BaseSchema):
    """Banner choice: accept or decline all non-necessary cookies."""

    consent: Literal["accepted", "declined"] = Field(
        ..., description="accepted or declined"
    )


class SessionResponse(BaseSchema):
    """Analytics session identifier for a device."""

    session_id: str
