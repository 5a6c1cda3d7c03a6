from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ..db.base import Base


class CatalogMixin:
    """Columns shared by the item and weapon catalogs."""

    id: Mapped[int] = mapped_column(primary_key=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)


class Item(CatalogMixin, Base):
    __tablename__ = "items"


class Weapon(CatalogMixin, Base):
    __tablename__ = "weapons"
