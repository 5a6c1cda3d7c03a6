from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import AuthError
from .core.security import AccessTokenClaims, AccessTokenIssuer, PasswordHasher
from .db.session import async_session_factory
from .services import AuthService, PlayerService, RefreshTokenManager
from .settings import bloodwave_settings


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


def get_token_issuer(request: Request) -> AccessTokenIssuer:
    return request.app.state.token_issuer


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_auth_service(
    session: AsyncSession = Depends(get_session),
    issuer: AccessTokenIssuer = Depends(get_token_issuer),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    settings = bloodwave_settings()
    return AuthService(
        session,
        hasher=hasher,
        access_tokens=issuer,
        refresh_tokens=RefreshTokenManager.from_settings(session, settings),
    )


def get_player_service(session: AsyncSession = Depends(get_session)) -> PlayerService:
    settings = bloodwave_settings()
    return PlayerService(
        session,
        leaderboard_default_limit=settings.leaderboard_default_limit,
        leaderboard_max_limit=settings.leaderboard_max_limit,
    )


def get_current_claims(
    request: Request,
    issuer: AccessTokenIssuer = Depends(get_token_issuer),
) -> AccessTokenClaims:
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = auth.split(" ", 1)[1].strip()
    try:
        return issuer.validate(token)
    except AuthError as exc:
        logger.info(f"Bearer token rejected: {exc.message}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc


def get_current_user_id(claims: AccessTokenClaims = Depends(get_current_claims)) -> int:
    return claims.user_id
