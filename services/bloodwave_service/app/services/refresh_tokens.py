from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from ..core.clock import utcnow
from ..core.errors import AuthError, AuthErrorKind
from ..models import RefreshToken
from ..repositories import RefreshTokenStore, hash_token

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from ..settings import BloodwaveSettings

MIN_TOKEN_BYTES = 64


@dataclass(frozen=True)
class IssuedRefreshToken:
    """A freshly minted refresh token: the plaintext handed to the client plus its stored record."""

    token: str
    record: RefreshToken

    @property
    def expires_at(self) -> datetime:
        return self.record.expires_at


class RefreshTokenManager:
    """Issues, validates, rotates and revokes refresh tokens.

    Methods flush but never commit; the caller owns the transaction, which is
    what lets a rotation's revoke and insert land in one commit.
    """

    def __init__(
        self,
        store: RefreshTokenStore,
        *,
        ttl: timedelta,
        token_bytes: int = MIN_TOKEN_BYTES,
        strict_rotation: bool = True,
    ) -> None:
        if token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"Refresh tokens need at least {MIN_TOKEN_BYTES} bytes of entropy")
        self._store = store
        self._ttl = ttl
        self._token_bytes = token_bytes
        self._strict_rotation = strict_rotation

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: BloodwaveSettings) -> RefreshTokenManager:
        return cls(
            RefreshTokenStore(session),
            ttl=timedelta(minutes=settings.refresh_token_expires_minutes),
            token_bytes=settings.refresh_token_bytes,
            strict_rotation=settings.strict_refresh_rotation,
        )

    def _generate_token(self) -> str:
        return secrets.token_urlsafe(self._token_bytes)

    async def issue(
        self,
        user_id: int,
        *,
        replaces: RefreshToken | None = None,
        now: datetime | None = None,
    ) -> IssuedRefreshToken:
        now = now or utcnow()
        token = self._generate_token()
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(token),
            replaces_token_hash=replaces.token_hash if replaces is not None else None,
            created_at=now,
            expires_at=now + self._ttl,
            revoked_at=None,
        )
        await self._store.insert(record)
        return IssuedRefreshToken(token=token, record=record)

    async def validate(self, token: str) -> RefreshToken:
        record = await self._store.find_by_token(token)
        if record is None:
            raise AuthError(AuthErrorKind.TOKEN_NOT_FOUND, "Refresh token not found")
        if not record.is_active():
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED_OR_REVOKED, "Refresh token expired or revoked")
        return record

    async def rotate(self, old_token: str, user_id: int) -> IssuedRefreshToken:
        now = utcnow()
        predecessor = await self._store.find_by_token(old_token)
        if predecessor is None:
            if self._strict_rotation:
                raise AuthError(AuthErrorKind.TOKEN_NOT_FOUND, "Refresh token not found")
            logger.warning(f"Unknown refresh token presented for user {user_id}; issuing an unchained token")
            return await self.issue(user_id, now=now)

        if predecessor.user_id != user_id:
            raise AuthError(AuthErrorKind.TOKEN_NOT_FOUND, "Refresh token not found")

        if not await self._store.revoke_if_active(predecessor, now):
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED_OR_REVOKED, "Refresh token expired or revoked")

        return await self.issue(user_id, replaces=predecessor, now=now)

    async def revoke_all_for_user(self, user_id: int) -> int:
        return await self._store.revoke_all_active(user_id, utcnow())
