from __future__ import annotations

import asyncio

from loguru import logger
from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.errors import AuthError, AuthErrorKind
from ..core.security import AccessTokenIssuer, PasswordHasher
from ..metrics import (
    account_deactivation_total,
    login_attempt_total,
    logout_total,
    registration_total,
    token_refresh_total,
)
from ..models import User
from ..repositories import UserStore
from ..schemas import AuthResult, UserSummary
from .refresh_tokens import IssuedRefreshToken, RefreshTokenManager

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
INVALID_REFRESH_TOKEN_MESSAGE = "Invalid or expired refresh token"
INTERNAL_ERROR_MESSAGE = "Internal server error"


class AuthService:
    """Register, login, logout and refresh on top of the credential and token stores.

    Every public operation is one unit of work on the injected session: it
    commits on success and rolls back on any failure. Expected failures come
    back as ``AuthResult`` values; storage errors are logged and returned as
    ``internal_error`` instead of propagating.

    Logout only revokes refresh tokens. Access tokens already handed out stay
    valid until their own expiry.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        hasher: PasswordHasher,
        access_tokens: AccessTokenIssuer,
        refresh_tokens: RefreshTokenManager,
        users: UserStore | None = None,
    ) -> None:
        self._session = session
        self._hasher = hasher
        self._access_tokens = access_tokens
        self._refresh_tokens = refresh_tokens
        self._users = users or UserStore(session)

    async def register(self, username: str, password: str, email: str) -> AuthResult:
        if not username or not username.strip() or not password or not password.strip():
            return await self._reject(registration_total, AuthErrorKind.INVALID_INPUT, "Username and password required")

        try:
            if await self._users.find_by_username(username) is not None:
                return await self._reject(registration_total, AuthErrorKind.USERNAME_TAKEN, "Username already exists")
            if await self._users.find_by_email(email) is not None:
                return await self._reject(registration_total, AuthErrorKind.EMAIL_TAKEN, "Email already registered")

            password_hash = await asyncio.to_thread(self._hasher.hash, password)
            user = User(
                username=username,
                email=email,
                password_hash=password_hash,
                is_active=True,
                created_at=utcnow(),
            )
            await self._users.insert(user)
            refresh = await self._refresh_tokens.issue(user.id)
            await self._session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name or email.
            await self._session.rollback()
            return await self._classify_conflict(username, email)
        except SQLAlchemyError as exc:
            return await self._internal_failure("register", registration_total, exc)

        registration_total.labels(outcome="success").inc()
        logger.info(f"Registered user {user.id} ({user.username})")
        return self._session_result(user, refresh, "User registered successfully")

    async def login(self, username: str, password: str) -> AuthResult:
        try:
            user = await self._users.find_by_username(username)
            if user is None:
                await asyncio.to_thread(self._hasher.dummy_verify)
                return await self._reject(login_attempt_total, AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)
            if not await asyncio.to_thread(self._hasher.verify, password, user.password_hash):
                return await self._reject(login_attempt_total, AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)
            if not user.is_active:
                return await self._reject(login_attempt_total, AuthErrorKind.ACCOUNT_INACTIVE, "User account is inactive")

            refresh = await self._refresh_tokens.issue(user.id)
            await self._session.commit()
        except SQLAlchemyError as exc:
            return await self._internal_failure("login", login_attempt_total, exc)

        login_attempt_total.labels(outcome="success").inc()
        logger.info(f"User {user.id} logged in")
        return self._session_result(user, refresh, "Login successful")

    async def logout(self, user_id: int) -> AuthResult:
        try:
            revoked = await self._refresh_tokens.revoke_all_for_user(user_id)
            await self._session.commit()
        except SQLAlchemyError as exc:
            return await self._internal_failure("logout", logout_total, exc)

        logout_total.labels(outcome="success").inc()
        logger.info(f"User {user_id} logged out; revoked {revoked} refresh token(s)")
        return AuthResult(success=True, message="Logged out successfully")

    async def refresh(self, refresh_token: str) -> AuthResult:
        try:
            try:
                record = await self._refresh_tokens.validate(refresh_token)
            except AuthError as exc:
                logger.info(f"Refresh rejected: {exc.message}")
                return await self._reject(
                    token_refresh_total, AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN, INVALID_REFRESH_TOKEN_MESSAGE
                )

            user = await self._users.find_by_id(record.user_id)
            if user is None:
                return await self._reject(token_refresh_total, AuthErrorKind.USER_NOT_FOUND, "User not found")
            if not user.is_active:
                return await self._reject(token_refresh_total, AuthErrorKind.ACCOUNT_INACTIVE, "User account is inactive")

            try:
                successor = await self._refresh_tokens.rotate(refresh_token, user.id)
            except AuthError as exc:
                logger.info(f"Rotation rejected for user {user.id}: {exc.message}")
                return await self._reject(
                    token_refresh_total, AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN, INVALID_REFRESH_TOKEN_MESSAGE
                )
            await self._session.commit()
        except SQLAlchemyError as exc:
            return await self._internal_failure("refresh", token_refresh_total, exc)

        token_refresh_total.labels(outcome="success").inc()
        return self._session_result(user, successor, "Token refreshed successfully")

    async def deactivate(self, user_id: int) -> AuthResult:
        """Soft-delete an account: login is refused and its refresh tokens are revoked."""
        try:
            user = await self._users.find_by_id(user_id)
            if user is None:
                return await self._reject(account_deactivation_total, AuthErrorKind.USER_NOT_FOUND, "User not found")
            user.is_active = False
            await self._users.update(user)
            revoked = await self._refresh_tokens.revoke_all_for_user(user.id)
            await self._session.commit()
        except SQLAlchemyError as exc:
            return await self._internal_failure("deactivate", account_deactivation_total, exc)

        account_deactivation_total.labels(outcome="success").inc()
        logger.info(f"Deactivated user {user_id}; revoked {revoked} refresh token(s)")
        return AuthResult(success=True, message="Account deactivated", user=UserSummary.model_validate(user))

    async def get_user(self, user_id: int) -> UserSummary | None:
        user = await self._users.find_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return UserSummary.model_validate(user)

    def _session_result(self, user: User, refresh: IssuedRefreshToken, message: str) -> AuthResult:
        access = self._access_tokens.issue(user)
        return AuthResult(
            success=True,
            message=message,
            token=access.token,
            refresh_token=refresh.token,
            expires_at=access.expires_at,
            user=UserSummary.model_validate(user),
        )

    async def _reject(self, counter: Counter, error: AuthErrorKind, message: str) -> AuthResult:
        await self._session.rollback()
        counter.labels(outcome=error.value).inc()
        return AuthResult.failure(error, message)

    async def _classify_conflict(self, username: str, email: str) -> AuthResult:
        try:
            return await self._conflict_result(username, email)
        except SQLAlchemyError as exc:
            return await self._internal_failure("register", registration_total, exc)

    async def _conflict_result(self, username: str, email: str) -> AuthResult:
        if await self._users.find_by_username(username) is not None:
            return await self._reject(registration_total, AuthErrorKind.USERNAME_TAKEN, "Username already exists")
        if await self._users.find_by_email(email) is not None:
            return await self._reject(registration_total, AuthErrorKind.EMAIL_TAKEN, "Email already registered")
        return await self._reject(registration_total, AuthErrorKind.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)

    async def _internal_failure(self, operation: str, counter: Counter, exc: SQLAlchemyError) -> AuthResult:
        # str(exc) embeds bound parameters (password hashes among them); log the driver error only.
        logger.error(f"{operation} failed on storage: {type(exc).__name__}: {getattr(exc, 'orig', '')}")
        await self._session.rollback()
        counter.labels(outcome=AuthErrorKind.INTERNAL_ERROR.value).inc()
        return AuthResult.failure(AuthErrorKind.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)
