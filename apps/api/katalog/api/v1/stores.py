"""Store setup and settings API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from katalog.core.deps import (
    CurrentUser,
    DBSession,
    get_owned_store,
    get_store_for_user,
    get_user_id,
)
from katalog.models.store import Store
from katalog.schemas.store import (
    CustomURLAvailability,
    StoreCreate,
    StoreResponse,
    StoreUpdate,
)
from katalog.services.store_service import (
    CustomURLError,
    claim_custom_url,
    is_custom_url_available,
    validate_custom_url,
)

router = APIRouter()


@router.post(
    "",
    response_model=StoreResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Set up store",
    description="Create the authenticated user's store. Each user has one store.",
)
async def create_store(
    data: StoreCreate,
    user: CurrentUser,
    db: DBSession,
) -> StoreResponse:
    """Create the caller's store."""
    owner_id = get_user_id(user)

    existing = await db.execute(select(Store.id).where(Store.owner_id == owner_id))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Store already set up",
        )

    try:
        custom_url = await claim_custom_url(db, data.custom_url, owner_id=owner_id)
    except CustomURLError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    store = Store(
        owner_id=owner_id,
        name=data.name,
        custom_url=custom_url,
        category=data.category,
        phone_number=data.phone_number,
        logo_url=data.logo_url,
        is_visible=data.is_visible,
    )
    db.add(store)
    await db.commit()
    await db.refresh(store)

    return StoreResponse.model_validate(store)


@router.get(
    "/me",
    response_model=StoreResponse,
    summary="Get my store",
)
async def get_my_store(
    store: Store = Depends(get_owned_store),
) -> StoreResponse:
    return StoreResponse.model_validate(store)


@router.patch(
    "/me",
    response_model=StoreResponse,
    summary="Update my store",
    description="Update store details and the action button. Only provided fields change.",
)
async def update_my_store(
    data: StoreUpdate,
    user: CurrentUser,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> StoreResponse:
    """Update the caller's store."""
    update_data = data.model_dump(exclude_unset=True)

    if "custom_url" in update_data:
        try:
            update_data["custom_url"] = await claim_custom_url(
                db, update_data["custom_url"], owner_id=get_user_id(user)
            )
        except CustomURLError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    for field, value in update_data.items():
        setattr(store, field, value)

    await db.commit()
    await db.refresh(store)

    return StoreResponse.model_validate(store)


@router.get(
    "/custom-url/{custom_url}/availability",
    response_model=CustomURLAvailability,
    summary="Check custom URL",
    description="Check whether a custom URL is well-formed and free.",
)
async def check_custom_url(
    custom_url: str,
    db: DBSession,
) -> CustomURLAvailability:
    """Check a custom URL. No auth required."""
    try:
        value = validate_custom_url(custom_url)
    except CustomURLError as e:
        return CustomURLAvailability(custom_url=custom_url, available=False, reason=str(e))

    if not await is_custom_url_available(db, value):
        return CustomURLAvailability(
            custom_url=value,
            available=False,
            reason="This custom URL is already taken.",
        )
    return CustomURLAvailability(custom_url=value, available=True)


@router.get(
    "/{store_id}",
    response_model=StoreResponse,
    summary="Get store",
    description="Get a store by ID. Only its owner may read it.",
)
async def get_store(
    store_id: UUID,
    user: CurrentUser,
    db: DBSession,
) -> StoreResponse:
    store = await get_store_for_user(store_id, user, db)
    return StoreResponse.model_validate(store)
