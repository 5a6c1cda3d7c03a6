from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError

from .clock import utcnow
from .errors import AuthError, AuthErrorKind

if TYPE_CHECKING:
    from ..models import User
    from ..settings import BloodwaveSettings

ACCESS_TOKEN_TYPE = "access"
SIGNING_ALGORITHM = "HS256"


class PasswordHasher:
    """bcrypt hashing through passlib; verification is constant-time.

    ``bcrypt_sha256`` digests the password before bcrypt sees it, so bytes past
    bcrypt's 72-byte input limit still count.
    """

    def __init__(self, context: CryptContext | None = None) -> None:
        self._context = context or CryptContext(schemes=["bcrypt_sha256"], deprecated="auto")

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        try:
            return self._context.verify(plaintext, hashed)
        except ValueError:
            # Unrecognised or corrupt stored hash
            return False

    def dummy_verify(self) -> None:
        """Spend the time of a real verification, for lookups that found no user."""
        self._context.dummy_verify()


class AccessTokenClaims(BaseModel):
    sub: str
    name: str
    email: str
    iss: str
    aud: str
    iat: int
    exp: int
    typ: str

    @property
    def user_id(self) -> int:
        return int(self.sub)


@dataclass(frozen=True)
class IssuedAccessToken:
    token: str
    expires_at: datetime


class AccessTokenIssuer:
    """Signs and validates HS256 bearer tokens.

    The key, issuer and audience are fixed for the lifetime of the instance,
    so one issuer is built at startup and shared read-only by all requests.
    """

    def __init__(self, secret_key: str, *, issuer: str, audience: str, ttl: timedelta) -> None:
        if not secret_key:
            raise ValueError("Access token signing key must not be empty")
        if ttl <= timedelta(0):
            raise ValueError("Access token TTL must be positive")
        self._secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: BloodwaveSettings) -> AccessTokenIssuer:
        return cls(
            settings.secret_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            ttl=timedelta(minutes=settings.access_token_expires_minutes),
        )

    def issue(self, user: User, *, now: datetime | None = None) -> IssuedAccessToken:
        issued_at = now or utcnow()
        expires_at = issued_at + self.ttl
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "name": user.username,
            "email": user.email,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "typ": ACCESS_TOKEN_TYPE,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=SIGNING_ALGORITHM)
        return IssuedAccessToken(token=token, expires_at=expires_at.replace(microsecond=0))

    def validate(self, token: str) -> AccessTokenClaims:
        try:
            decoded = jwt.decode(
                token,
                self._secret_key,
                algorithms=[SIGNING_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={"leeway": 0},
            )
        except ExpiredSignatureError as exc:
            raise AuthError(AuthErrorKind.INVALID_ACCESS_TOKEN, "Token has expired") from exc
        except JWTError as exc:
            raise AuthError(AuthErrorKind.INVALID_ACCESS_TOKEN, "Invalid token") from exc

        try:
            claims = AccessTokenClaims.model_validate(decoded)
        except ValidationError as exc:
            raise AuthError(AuthErrorKind.INVALID_ACCESS_TOKEN, "Invalid token claims") from exc

        if claims.typ != ACCESS_TOKEN_TYPE:
            raise AuthError(AuthErrorKind.INVALID_ACCESS_TOKEN, "Invalid token type")
        # jose accepts a token during its expiry second; expiry here is exclusive.
        if claims.exp <= int(utcnow().timestamp()):
            raise AuthError(AuthErrorKind.INVALID_ACCESS_TOKEN, "Token has expired")
        if not claims.sub.isdigit():
            raise AuthError(AuthErrorKind.INVALID_ACCESS_TOKEN, "Unsupported subject format")
        return claims
