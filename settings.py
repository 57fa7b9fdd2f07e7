"""Central configuration for the app, read from the environment."""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    """Interpret an environment variable as a boolean flag."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Settings:
    """Central configuration for the MediFind backend."""

    # --- Server ---
    HOST: str = os.getenv('MEDIFIND_HOST', '127.0.0.1')
    PORT: int = int(os.getenv('MEDIFIND_PORT', '7000'))
    DEBUG: bool = _env_bool('MEDIFIND_DEBUG', False)
    SERVICE_NAME: str = 'MediFind Backend'
    FEATURES: list[str] = [
        'search', 'price_comparison', 'alerts', 'admin_portal', 'reports'
    ]

    # --- Logging ---
    LOG_LEVEL: str = os.getenv('MEDIFIND_LOG_LEVEL', 'INFO')
    LOG_FILE: str | None = os.getenv('MEDIFIND_LOG_FILE') or None

    # --- Query defaults ---
    SEARCH_DEFAULT_LIMIT: int = 10
    CATEGORY_DEFAULT_LIMIT: int = 20
    POPULAR_DEFAULT_LIMIT: int = 10

    # --- Alerts ---
    CURRENCY_SYMBOL: str = os.getenv('MEDIFIND_CURRENCY_SYMBOL', '₹')

    # --- Distance fallback (used when the caller sends no coordinates) ---
    DISTANCE_SEED: int | None = (int(os.environ['MEDIFIND_DISTANCE_SEED'])
                                 if 'MEDIFIND_DISTANCE_SEED' in os.environ
                                 else None)
    FIXED_FALLBACK_DISTANCE_KM: float = 2.5
