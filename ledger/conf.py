"""
Effective configuration for the ledger engines.

Projects override any of these keys through ``settings.LEDGER``; values
are resolved on every call so ``override_settings`` works in tests.
"""

from django.conf import settings

DEFAULTS = {
    # Accrual: peak window is inclusive on both ends, hours in UTC.
    "PEAK_HOURS_START": 16,
    "PEAK_HOURS_END": 22,
    "PEAK_MULTIPLIER": "1.25",
    "IDLE_PROBABILITY": 0.1,
    "ACCRUAL_INTERVAL_MINUTES": 60,
    "PACKAGES": {
        "Standard Port": {
            "rated_power_kw": 22.0,
            "tiers": [
                {"name": "slow", "weight": 0.2, "min": 7.00, "max": 11.00},
                {"name": "standard", "weight": 0.6, "min": 11.00, "max": 16.00},
                {"name": "busy", "weight": 0.2, "min": 16.00, "max": 22.00},
            ],
        },
        "High-Traffic Pro Port": {
            "rated_power_kw": 150.0,
            "tiers": [
                {"name": "slow", "weight": 0.2, "min": 12.00, "max": 18.00},
                {"name": "standard", "weight": 0.6, "min": 18.00, "max": 24.00},
                {"name": "busy", "weight": 0.2, "min": 24.00, "max": 32.00},
            ],
        },
    },
    "REGION_PRICES": {
        "US-West": "0.52",
        "US-East": "0.44",
        "US-Central": "0.38",
        "EU": "0.60",
        "UK": "0.65",
    },
    "DEFAULT_PRICE_PER_KWH": "0.45",
    "CO2_KG_PER_KWH": "0.41",
    "MILES_PER_KWH": "3.4",
    "VEHICLES": [
        (0.30, "Tesla Model 3"),
        (0.20, "Tesla Model Y"),
        (0.15, "Ford Mustang Mach-E"),
        (0.15, "Chevrolet Bolt EV"),
        (0.10, "Hyundai Ioniq 5"),
        (0.10, "Nissan Leaf"),
    ],
    # Bulk reset: chunks stay below the store's per-commit ceiling.
    "BATCH_WRITE_LIMIT": 500,
    "RESET_CHUNK_SIZE": 450,
    "RESET_WORKERS": 1,
    # Atomic units retry transient database conflicts this many times in total.
    "ATOMIC_ATTEMPTS": 5,
    "INTERNAL_API_SECRET": "",
}


def ledger_settings():
    merged = dict(DEFAULTS)
    merged.update(getattr(settings, "LEDGER", {}) or {})
    return merged


def ledger_setting(name):
    return ledger_settings()[name]
