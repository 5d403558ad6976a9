"""Product model for catalog items."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from katalog.models.base import Base

if TYPE_CHECKING:
    from katalog.models.store import Store


class Product(Base):
    """A product listed in a store's catalog.

    Products are ordered through outbound links rather than a checkout: the
    optional ``custom_link`` (WhatsApp, Telegram, e-mail, marketplace, web)
    or, failing that, the store's phone number on WhatsApp.
    """

    __tablename__ = "products"

    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing
    currency: Mapped[str] = mapped_column(String(8), default="₺", nullable=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    show_price: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    highlighted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Category path; the main category is required, deeper levels optional
    main_category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sub_category1_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    sub_category2_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    image_urls: Mapped[list[str]] = mapped_column(
        ARRAY(String),
        default=list,
        nullable=False,
    )
    custom_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    store: Mapped["Store"] = relationship("Store", back_populates="products")

    @property
    def has_image(self) -> bool:
        return bool(self.image_urls)

    def __repr__(self) -> str:
        return f"<Product {self.name}>"
