"""Category model for the three-level product category tree."""

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from katalog.models.base import Base

if TYPE_CHECKING:
    from katalog.models.store import Store


class CategoryLevel(str, enum.Enum):
    """Depth in the tree: main > sub1 > sub2."""

    MAIN = "main"
    SUB1 = "sub1"
    SUB2 = "sub2"


# Level a parent must have for each child level
PARENT_LEVEL: dict[CategoryLevel, CategoryLevel | None] = {
    CategoryLevel.MAIN: None,
    CategoryLevel.SUB1: CategoryLevel.MAIN,
    CategoryLevel.SUB2: CategoryLevel.SUB1,
}


class Category(Base):
    """A node in a store's category tree."""

    __tablename__ = "categories"

    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[CategoryLevel] = mapped_column(
        Enum(CategoryLevel, name="category_level", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    store: Mapped["Store"] = relationship("Store", back_populates="categories")

    def __repr__(self) -> str:
        return f"<Category {self.name} ({self.level.value})>"
