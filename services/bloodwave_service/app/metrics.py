"""Prometheus metrics for Bloodwave service flows."""

from __future__ import annotations

from prometheus_client import Counter

registration_total = Counter(
    "bloodwave_registration_total",
    "Number of registration attempts grouped by outcome",
    ["outcome"],
)

login_attempt_total = Counter(
    "bloodwave_login_attempt_total",
    "Number of login attempts grouped by outcome",
    ["outcome"],
)

token_refresh_total = Counter(
    "bloodwave_token_refresh_total",
    "Refresh token exchanges grouped by outcome",
    ["outcome"],
)

logout_total = Counter(
    "bloodwave_logout_total",
    "Logouts grouped by outcome",
    ["outcome"],
)

account_deactivation_total = Counter(
    "bloodwave_account_deactivation_total",
    "Account deactivations grouped by outcome",
    ["outcome"],
)

match_recorded_total = Counter(
    "bloodwave_match_recorded_total",
    "Recorded matches grouped by outcome",
    ["outcome"],
)
