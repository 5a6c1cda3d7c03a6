from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..db.base import Base


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Survival time in seconds
    time: Mapped[int] = mapped_column(nullable=False)
    level: Mapped[int] = mapped_column(nullable=False)
    max_health: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    item_links: Mapped[list[MatchItem]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MatchItem.id",
    )
    weapon_links: Mapped[list[MatchWeapon]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MatchWeapon.id",
    )

    @property
    def item_ids(self) -> list[int]:
        return [link.item_id for link in self.item_links]

    @property
    def weapon_ids(self) -> list[int]:
        return [link.weapon_id for link in self.weapon_links]


class MatchItem(Base):
    __tablename__ = "match_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)

    match: Mapped[Match] = relationship(back_populates="item_links")


class MatchWeapon(Base):
    __tablename__ = "match_weapons"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    weapon_id: Mapped[int] = mapped_column(ForeignKey("weapons.id", ondelete="CASCADE"), nullable=False, index=True)

    match: Mapped[Match] = relationship(back_populates="weapon_links")
