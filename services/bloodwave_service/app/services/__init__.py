"""Service-layer components for Bloodwave."""

from .auth import AuthService
from .players import PlayerService
from .refresh_tokens import IssuedRefreshToken, RefreshTokenManager

__all__ = [
    "AuthService",
    "IssuedRefreshToken",
    "PlayerService",
    "RefreshTokenManager",
]
