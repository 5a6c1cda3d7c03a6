from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    """Machine-readable outcome of a failed auth operation."""

    INVALID_INPUT = "invalid_input"
    USERNAME_TAKEN = "username_taken"
    EMAIL_TAKEN = "email_taken"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"
    INVALID_OR_EXPIRED_REFRESH_TOKEN = "invalid_or_expired_refresh_token"
    USER_NOT_FOUND = "user_not_found"
    INTERNAL_ERROR = "internal_error"

    # Raised by the token components and translated by AuthService.
    TOKEN_NOT_FOUND = "token_not_found"
    TOKEN_EXPIRED_OR_REVOKED = "token_expired_or_revoked"
    INVALID_ACCESS_TOKEN = "invalid_access_token"


class AuthError(Exception):
    def __init__(self, kind: AuthErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or kind.value.replace("_", " ")
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, message={self.message!r})"


class UnknownCatalogEntry(LookupError):
    """A match referenced an item or weapon id that does not exist."""

    def __init__(self, catalog: str, ids: list[int]) -> None:
        self.catalog = catalog
        self.ids = ids
        super().__init__(f"Unknown {catalog} ids: {', '.join(str(i) for i in ids)}")
