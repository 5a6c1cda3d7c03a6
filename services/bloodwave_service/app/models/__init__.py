from .catalog import Item, Weapon
from .match import Match, MatchItem, MatchWeapon
from .player_stats import PlayerStats
from .refresh_token import RefreshToken
from .user import User

__all__ = [
    "Item",
    "Match",
    "MatchItem",
    "MatchWeapon",
    "PlayerStats",
    "RefreshToken",
    "User",
    "Weapon",
]
