from .auth import AuthResult, LoginRequest, RefreshRequest, RegisterRequest, UserSummary
from .player import CreateMatchRequest, LeaderboardEntry, MatchResponse, PlayerStatsResponse

__all__ = [
    "AuthResult",
    "CreateMatchRequest",
    "LeaderboardEntry",
    "LoginRequest",
    "MatchResponse",
    "PlayerStatsResponse",
    "RefreshRequest",
    "RegisterRequest",
    "UserSummary",
]
