"""Prometheus counters for credential workflows."""

from __future__ import annotations

from prometheus_client import Counter

LOGINS = Counter(
    "account_logins_total",
    "Login attempts by outcome.",
    ["outcome"],
)

PASSWORD_RESETS = Counter(
    "account_password_resets_total",
    "Password-reset workflow transitions by stage.",
    ["stage"],
)
