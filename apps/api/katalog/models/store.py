"""Store model: a merchant's public catalog and its settings."""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from katalog.models.base import Base

if TYPE_CHECKING:
    from katalog.models.category import Category
    from katalog.models.product import Product


class StoreCategory(str, enum.Enum):
    """Kind of business the store belongs to."""

    RESTAURANT = "restaurant"
    BOUTIQUE = "boutique"
    REAL_ESTATE = "real-estate"
    CAR_DEALERSHIP = "car-dealership"
    FREELANCER = "freelancer"
    SALON = "salon"
    INSTRUCTOR = "instructor"
    CUSTOM = "custom"


class Store(Base):
    """A merchant's store, reachable at ``/{custom_url}``.

    Each Better Auth user owns at most one store. Products and categories
    are scoped to it.
    """

    __tablename__ = "stores"

    # Better Auth user id of the merchant
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    custom_url: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )
    category: Mapped[StoreCategory] = mapped_column(
        Enum(StoreCategory, name="store_category", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Contact / action button shown on the catalog page
    action_button_title: Mapped[str | None] = mapped_column(String(100), nullable=True)
    action_button_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    action_button_color: Mapped[str | None] = mapped_column(String(7), nullable=True)

    categories: Mapped[list["Category"]] = relationship(
        "Category",
        back_populates="store",
        cascade="all, delete-orphan",
    )
    products: Mapped[list["Product"]] = relationship(
        "Product",
        back_populates="store",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Store {self.name} (/{self.custom_url})>"
