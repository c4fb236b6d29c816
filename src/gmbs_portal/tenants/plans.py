"""Subscription plan catalogue.

A plan fixes the default artisan quota and the feature list reported by
``GET /subscription/status``. Unknown plans fall back to ``basic``.
"""

# ── Artisan quota per plan ──
PLAN_ARTISAN_LIMITS = {
    "basic": 10,
    "pro": 50,
    "enterprise": 999,
}

# ── Feature flags per plan ──
PLAN_FEATURES = {
    "basic": ["tokens", "submissions", "photos"],
    "pro": ["tokens", "submissions", "photos", "reports", "api_extended"],
    "enterprise": [
        "tokens", "submissions", "photos", "reports", "api_extended",
        "webhooks", "priority_support",
    ],
}

# Scopes granted to a key when none are requested explicitly.
DEFAULT_SCOPES = ["tokens:write", "submissions:read"]

KNOWN_SCOPES = frozenset(DEFAULT_SCOPES)


def get_plan_features(plan: str) -> list[str]:
    return list(PLAN_FEATURES.get((plan or "").lower(), PLAN_FEATURES["basic"]))


def get_artisan_limit(plan: str) -> int:
    return PLAN_ARTISAN_LIMITS.get((plan or "").lower(), PLAN_ARTISAN_LIMITS["basic"])
