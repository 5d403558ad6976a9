"""Cookie consent endpoints for the calling device."""

from typing import get_args

from fastapi import APIRouter, Depends, status

from katalog.core.deps import get_consent_store, get_device_storage
from katalog.schemas.consent import (
    Consent,
    ConsentCategories,
    ConsentResponse,
    ConsentUpdate,
    CookieCategory,
    SessionResponse,
)
from katalog.services.consent_service import ConsentStore
from katalog.services.device_storage import DeviceStorage
from katalog.services.session_identity import SessionIdentity

router = APIRouter()


async def _consent_state(store: ConsentStore) -> ConsentResponse:
    consent = await store.get_consent()
    return ConsentResponse(
        consent=consent,
        settings=await store.get_settings(),
        allowed={category: await store.is_allowed(category) for category in get_args(CookieCategory)},
        show_banner=consent == Consent.UNSET,
    )


@router.get(
    "",
    response_model=ConsentResponse,
    summary="Get consent",
    description="Current banner choice, category toggles and effective permissions.",
)
async def get_consent(
    store: ConsentStore = Depends(get_consent_store),
) -> ConsentResponse:
    return await _consent_state(store)


@router.put(
    "",
    response_model=ConsentResponse,
    summary="Accept or decline cookies",
)
async def update_consent(
    data: ConsentUpdate,
    store: ConsentStore = Depends(get_consent_store),
) -> ConsentResponse:
    """Record the banner choice; accepting enables every category."""
    await store.set_consent(Consent(data.consent))
    return await _consent_state(store)


@router.put(
    "/settings",
    response_model=ConsentResponse,
    summary="Save cookie settings",
    description="Save granular category toggles. The banner choice is left as is.",
)
async def save_consent_settings(
    data: ConsentCategories,
    store: ConsentStore = Depends(get_consent_store),
) -> ConsentResponse:
    await store.save_settings(data)
    return await _consent_state(store)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset consent",
    description="Forget the banner choice and settings so the banner shows again.",
)
async def reset_consent(
    store: ConsentStore = Depends(get_consent_store),
) -> None:
    await store.reset()


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Get analytics session id",
)
async def get_session(
    storage: DeviceStorage = Depends(get_device_storage),
) -> SessionResponse:
    """The device's analytics session id, created on first use."""
    session_id = await SessionIdentity(storage).get_session_id()
    return SessionResponse(session_id=session_id)
