"""Storage collaborators used by the auth core."""

from .refresh_tokens import RefreshTokenStore, hash_token
from .users import UserStore

__all__ = ["RefreshTokenStore", "UserStore", "hash_token"]
