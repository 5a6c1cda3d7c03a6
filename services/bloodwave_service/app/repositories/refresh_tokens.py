from __future__ import annotations

import hashlib
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import RefreshToken


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RefreshTokenStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_token(self, token: str) -> RefreshToken | None:
        # Bulk revocations bypass the identity map; always reload the row.
        return await self._session.scalar(
            select(RefreshToken)
            .where(RefreshToken.token_hash == hash_token(token))
            .execution_options(populate_existing=True)
        )

    async def find_active_by_user(self, user_id: int, now: datetime) -> list[RefreshToken]:
        result = await self._session.scalars(
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.id)
            .execution_options(populate_existing=True)
        )
        return list(result)

    async def insert(self, record: RefreshToken) -> RefreshToken:
        self._session.add(record)
        await self._session.flush()
        return record

    async def update(self, record: RefreshToken) -> RefreshToken:
        self._session.add(record)
        await self._session.flush()
        return record

    async def revoke_if_active(self, record: RefreshToken, now: datetime) -> bool:
        """Revoke ``record`` only if it is still active; returns whether this call revoked it.

        The check and the write are a single conditional UPDATE, so of two
        transactions racing on the same token exactly one sees a matched row.
        """
        result = await self._session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == record.id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self._session.refresh(record)
        return True

    async def revoke_all_active(self, user_id: int, now: datetime) -> int:
        """Revoke every active token of ``user_id``; returns how many this call revoked.

        Tokens revoked concurrently (by a rotation, say) are matched out by the
        WHERE clause and keep their original ``revoked_at``.
        """
        result = await self._session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
