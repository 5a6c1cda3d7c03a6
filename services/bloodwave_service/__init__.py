"""Bloodwave game backend: player authentication, match history and leaderboard."""
