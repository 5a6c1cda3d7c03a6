from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from services.bloodwave_service.app.core.clock import utcnow
from services.bloodwave_service.app.core.errors import AuthErrorKind
from services.bloodwave_service.app.models import RefreshToken, User
from services.bloodwave_service.app.repositories import RefreshTokenStore, UserStore
from services.bloodwave_service.app.services import RefreshTokenManager


class _VanishedUsers(UserStore):
    """Token rows survive but the user lookup comes back empty."""

    async def find_by_id(self, user_id: int) -> User | None:
        return None


class _RacingUsers(UserStore):
    """Misses the first username lookup, as if a concurrent insert landed just after it."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self._calls = 0

    async def find_by_username(self, username: str) -> User | None:
        self._calls += 1
        if self._calls == 1:
            return None
        return await super().find_by_username(username)


class _BrokenUsers(UserStore):
    async def find_by_username(self, username: str) -> User | None:
        raise OperationalError("SELECT users", {}, Exception("database is unavailable"))


async def _active_tokens(session, user_id: int) -> list[RefreshToken]:
    return await RefreshTokenStore(session).find_active_by_user(user_id, utcnow())


@pytest.mark.asyncio
async def test_register_login_refresh_logout_flow(session, make_auth_service, issuer):
    service = make_auth_service(session)

    registered = await service.register("alice", "pw123!", "a@x.com")
    assert registered.success is True
    assert registered.message == "User registered successfully"
    assert registered.token and registered.refresh_token
    assert registered.user.username == "alice"
    assert registered.user.email == "a@x.com"
    assert abs((registered.expires_at - (utcnow() + timedelta(hours=24))).total_seconds()) < 5
    assert issuer.validate(registered.token).user_id == registered.user.id

    logged_in = await service.login("alice", "pw123!")
    assert logged_in.success is True
    assert logged_in.message == "Login successful"
    assert logged_in.refresh_token != registered.refresh_token

    refreshed = await service.refresh(logged_in.refresh_token)
    assert refreshed.success is True
    assert refreshed.message == "Token refreshed successfully"
    assert refreshed.refresh_token != logged_in.refresh_token

    replayed = await service.refresh(logged_in.refresh_token)
    assert replayed.success is False
    assert replayed.error is AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN
    assert replayed.message == "Invalid or expired refresh token"

    logged_out = await service.logout(registered.user.id)
    assert logged_out.success is True
    assert logged_out.message == "Logged out successfully"
    assert await _active_tokens(session, registered.user.id) == []

    after_logout = await service.refresh(refreshed.refresh_token)
    assert after_logout.success is False
    assert after_logout.error is AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN


@pytest.mark.asyncio
async def test_register_stores_a_hash_not_the_password(session, make_auth_service, hasher):
    service = make_auth_service(session)
    result = await service.register("alice", "pw123!", "a@x.com")

    user = await session.get(User, result.user.id)
    assert user.password_hash != "pw123!"
    assert hasher.verify("pw123!", user.password_hash)
    assert user.is_active is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "username, password",
    [("", "pw123!"), ("   ", "pw123!"), ("alice", ""), ("alice", "   ")],
)
async def test_register_requires_username_and_password(session, make_auth_service, username, password):
    result = await make_auth_service(session).register(username, password, "a@x.com")

    assert result.success is False
    assert result.error is AuthErrorKind.INVALID_INPUT
    assert result.message == "Username and password required"
    assert list(await session.scalars(select(User))) == []


@pytest.mark.asyncio
async def test_register_duplicate_username(session, make_auth_service):
    service = make_auth_service(session)
    await service.register("alice", "pw123!", "a@x.com")

    result = await service.register("alice", "other-pw", "b@x.com")

    assert result.success is False
    assert result.error is AuthErrorKind.USERNAME_TAKEN
    assert result.message == "Username already exists"


@pytest.mark.asyncio
async def test_register_duplicate_email(session, make_auth_service):
    service = make_auth_service(session)
    await service.register("alice", "pw123!", "a@x.com")

    result = await service.register("bob", "pw456!", "a@x.com")

    assert result.success is False
    assert result.error is AuthErrorKind.EMAIL_TAKEN
    assert result.message == "Email already registered"


@pytest.mark.asyncio
async def test_register_race_on_unique_username_is_reported_as_taken(session, make_auth_service):
    await make_auth_service(session).register("alice", "pw123!", "a@x.com")
    service = make_auth_service(session, users=_RacingUsers(session))

    result = await service.register("alice", "pw456!", "other@x.com")

    assert result.success is False
    assert result.error is AuthErrorKind.USERNAME_TAKEN
    users = list(await session.scalars(select(User)))
    assert [user.username for user in users] == ["alice"]


@pytest.mark.asyncio
async def test_login_failures_do_not_reveal_which_part_was_wrong(session, make_auth_service):
    service = make_auth_service(session)
    await service.register("alice", "pw123!", "a@x.com")

    wrong_password = await service.login("alice", "nope")
    unknown_user = await service.login("mallory", "pw123!")

    for result in (wrong_password, unknown_user):
        assert result.success is False
        assert result.error is AuthErrorKind.INVALID_CREDENTIALS
        assert result.message == "Invalid username or password"
        assert result.token is None
        assert result.refresh_token is None


@pytest.mark.asyncio
async def test_each_login_opens_an_independent_session(session, make_auth_service):
    service = make_auth_service(session)
    registered = await service.register("alice", "pw123!", "a@x.com")

    phone = await service.login("alice", "pw123!")
    laptop = await service.login("alice", "pw123!")

    assert len(await _active_tokens(session, registered.user.id)) == 3
    assert (await service.refresh(phone.refresh_token)).success is True
    assert (await service.refresh(laptop.refresh_token)).success is True


@pytest.mark.asyncio
async def test_refresh_with_unknown_token(session, make_auth_service):
    result = await make_auth_service(session).refresh("never-issued")

    assert result.success is False
    assert result.error is AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN


@pytest.mark.asyncio
async def test_refresh_with_expired_token(session, make_auth_service, make_user):
    user = await make_user()
    manager = RefreshTokenManager(RefreshTokenStore(session), ttl=timedelta(days=7))
    stale = await manager.issue(user.id, now=utcnow() - timedelta(days=7, seconds=1))
    await session.commit()

    result = await make_auth_service(session).refresh(stale.token)

    assert result.success is False
    assert result.error is AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN


@pytest.mark.asyncio
async def test_refresh_for_missing_user(session, make_auth_service):
    registered = await make_auth_service(session).register("alice", "pw123!", "a@x.com")
    service = make_auth_service(session, users=_VanishedUsers(session))

    result = await service.refresh(registered.refresh_token)

    assert result.success is False
    assert result.error is AuthErrorKind.USER_NOT_FOUND
    assert result.message == "User not found"


@pytest.mark.asyncio
async def test_concurrent_refresh_of_one_token_succeeds_once(session, session_factory, make_auth_service):
    registered = await make_auth_service(session).register("alice", "pw123!", "a@x.com")

    async with session_factory() as first, session_factory() as second:
        results = await asyncio.gather(
            make_auth_service(first).refresh(registered.refresh_token),
            make_auth_service(second).refresh(registered.refresh_token),
        )

    assert sorted(result.success for result in results) == [False, True]
    loser = next(result for result in results if not result.success)
    assert loser.error is AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN
    assert len(await _active_tokens(session, registered.user.id)) == 1


@pytest.mark.asyncio
async def test_deactivate_blocks_login_and_revokes_tokens(session, make_auth_service):
    service = make_auth_service(session)
    registered = await service.register("alice", "pw123!", "a@x.com")

    deactivated = await service.deactivate(registered.user.id)
    assert deactivated.success is True
    assert deactivated.message == "Account deactivated"

    login = await service.login("alice", "pw123!")
    assert login.success is False
    assert login.error is AuthErrorKind.ACCOUNT_INACTIVE
    assert login.message == "User account is inactive"

    assert (await service.refresh(registered.refresh_token)).success is False
    assert await service.get_user(registered.user.id) is None


@pytest.mark.asyncio
async def test_inactive_account_with_wrong_password_reads_as_bad_credentials(session, make_auth_service):
    service = make_auth_service(session)
    registered = await service.register("alice", "pw123!", "a@x.com")
    await service.deactivate(registered.user.id)

    result = await service.login("alice", "wrong")

    assert result.error is AuthErrorKind.INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_deactivate_unknown_user(session, make_auth_service):
    result = await make_auth_service(session).deactivate(999)

    assert result.success is False
    assert result.error is AuthErrorKind.USER_NOT_FOUND


@pytest.mark.asyncio
async def test_logout_without_tokens_still_succeeds(session, make_auth_service, make_user):
    user = await make_user()

    result = await make_auth_service(session).logout(user.id)

    assert result.success is True
    assert result.message == "Logged out successfully"


@pytest.mark.asyncio
async def test_get_user_returns_summary(session, make_auth_service):
    service = make_auth_service(session)
    registered = await service.register("alice", "pw123!", "a@x.com")

    summary = await service.get_user(registered.user.id)

    assert summary.id == registered.user.id
    assert summary.username == "alice"
    assert await service.get_user(12345) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["register", "login"])
async def test_storage_failures_become_internal_errors(session, make_auth_service, operation):
    service = make_auth_service(session, users=_BrokenUsers(session))

    if operation == "register":
        result = await service.register("alice", "pw123!", "a@x.com")
    else:
        result = await service.login("alice", "pw123!")

    assert result.success is False
    assert result.error is AuthErrorKind.INTERNAL_ERROR
    assert result.message == "Internal server error"


@pytest.mark.asyncio
async def test_password_bytes_past_72_are_checked_on_login(session, make_auth_service):
    service = make_auth_service(session)
    await service.register("alice", "é" * 40 + "secret", "a@x.com")

    impostor = await service.login("alice", "é" * 40 + "totally-different")
    owner = await service.login("alice", "é" * 40 + "secret")

    assert impostor.success is False
    assert impostor.error is AuthErrorKind.INVALID_CREDENTIALS
    assert owner.success is True


@pytest.mark.asyncio
async def test_refresh_refused_once_the_account_is_inactive(session, make_auth_service):
    service = make_auth_service(session)
    registered = await service.register("alice", "pw123!", "a@x.com")

    users = UserStore(session)
    user = await users.find_by_id(registered.user.id)
    user.is_active = False
    await users.update(user)
    await session.commit()

    result = await service.refresh(registered.refresh_token)

    assert result.success is False
    assert result.error is AuthErrorKind.ACCOUNT_INACTIVE
    assert result.token is None
    assert len(await _active_tokens(session, registered.user.id)) == 1
