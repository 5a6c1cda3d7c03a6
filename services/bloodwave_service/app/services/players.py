from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.errors import UnknownCatalogEntry
from ..metrics import match_recorded_total
from ..models import Item, Match, MatchItem, MatchWeapon, PlayerStats, User, Weapon
from ..schemas import CreateMatchRequest, LeaderboardEntry


class PlayerService:
    """Match history, aggregate stats and the leaderboard for authenticated players."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        leaderboard_default_limit: int = 100,
        leaderboard_max_limit: int = 1000,
    ) -> None:
        self._session = session
        self._leaderboard_default_limit = leaderboard_default_limit
        self._leaderboard_max_limit = leaderboard_max_limit

    async def get_player_stats(self, user_id: int) -> PlayerStats | None:
        return await self._session.scalar(select(PlayerStats).where(PlayerStats.user_id == user_id))

    async def create_match(self, user_id: int, payload: CreateMatchRequest) -> Match:
        """Store a finished match and fold it into the player's stats in one commit.

        Clients that do not report kills get the reached level counted instead.
        """
        try:
            await self._ensure_catalog_entries(Item, payload.item_ids, "item")
            await self._ensure_catalog_entries(Weapon, payload.weapon_ids, "weapon")
        except UnknownCatalogEntry:
            await self._session.rollback()
            match_recorded_total.labels(outcome="unknown_catalog_entry").inc()
            raise

        now = utcnow()
        match = Match(
            user_id=user_id,
            time=payload.time,
            level=payload.level,
            max_health=payload.max_health,
            created_at=now,
            item_links=[MatchItem(item_id=item_id) for item_id in payload.item_ids],
            weapon_links=[MatchWeapon(weapon_id=weapon_id) for weapon_id in payload.weapon_ids],
        )
        self._session.add(match)
        kills = payload.kills if payload.kills is not None else payload.level
        await self._accumulate_stats(user_id, kills=kills, level=payload.level)
        await self._session.commit()
        match_recorded_total.labels(outcome="success").inc()
        return match

    async def update_player_stats(self, user_id: int, kills: int, level: int) -> PlayerStats:
        stats = await self._accumulate_stats(user_id, kills=kills, level=level)
        await self._session.commit()
        return stats

    async def list_matches(self, user_id: int) -> list[Match]:
        result = await self._session.scalars(
            select(Match).where(Match.user_id == user_id).order_by(Match.created_at.desc(), Match.id.desc())
        )
        return list(result)

    async def get_match(self, match_id: int, user_id: int) -> Match | None:
        # Scoped to the owner: another player's match id reads as missing.
        return await self._session.scalar(select(Match).where(Match.id == match_id, Match.user_id == user_id))

    async def leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        if limit is None or limit <= 0 or limit > self._leaderboard_max_limit:
            limit = self._leaderboard_default_limit
        rows = await self._session.execute(
            select(PlayerStats, User.username)
            .join(User, User.id == PlayerStats.user_id)
            .where(User.is_active.is_(True))
            .order_by(
                PlayerStats.total_kills.desc(),
                PlayerStats.highest_level.desc(),
                PlayerStats.updated_at.asc(),
                PlayerStats.user_id.asc(),
            )
            .limit(limit)
        )
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=stats.user_id,
                username=username,
                total_kills=stats.total_kills,
                highest_level=stats.highest_level,
                updated_at=stats.updated_at,
            )
            for rank, (stats, username) in enumerate(rows.all(), start=1)
        ]

    async def _accumulate_stats(self, user_id: int, *, kills: int, level: int) -> PlayerStats:
        now = utcnow()
        stats = await self.get_player_stats(user_id)
        if stats is None:
            stats = PlayerStats(user_id=user_id, total_kills=kills, highest_level=level, updated_at=now)
            self._session.add(stats)
        else:
            stats.total_kills += kills
            stats.highest_level = max(stats.highest_level, level)
            stats.updated_at = now
        await self._session.flush()
        return stats

    async def _ensure_catalog_entries(self, model: type[Item] | type[Weapon], ids: list[int], catalog: str) -> None:
        if not ids:
            return
        found = set(await self._session.scalars(select(model.id).where(model.id.in_(set(ids)))))
        missing = sorted(set(ids) - found)
        if missing:
            raise UnknownCatalogEntry(catalog, missing)
