import os


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_flag(key: str, default: str = "0") -> bool:
    return _env(key, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME = "Field Service Tracker"

    DATABASE_URL = _env("DATABASE_URL", "sqlite:///./fieldtrack.db")

    SECRET_KEY = _env("FIELDTRACK_SECRET", "fieldtrack-dev-secret-change-me")
    ALGORITHM = _env("FIELDTRACK_JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES = int(_env("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 12)))

    CORS_ORIGINS = [
        origin.strip()
        for origin in _env("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Location matching (0.1 km = 100 m)
    MATCH_RADIUS_KM = float(_env("FIELDTRACK_MATCH_RADIUS_KM", "0.1"))

    # Billing
    DEFAULT_HOURLY_RATE = float(_env("FIELDTRACK_HOURLY_RATE", "60"))
    INVOICE_NUMBER_ATTEMPTS = int(_env("FIELDTRACK_INVOICE_NUMBER_ATTEMPTS", "5"))

    DEFAULT_TIMEZONE = _env("FIELDTRACK_TIMEZONE", "UTC")

    # Reverse geocoding (best effort, off unless configured)
    GEOCODING_ENABLED = _env_flag("FIELDTRACK_GEOCODING_ENABLED")
    NOMINATIM_URL = _env("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
    GEOCODING_TIMEOUT_SECONDS = float(_env("FIELDTRACK_GEOCODING_TIMEOUT", "5"))
    GEOCODING_USER_AGENT = _env(
        "FIELDTRACK_GEOCODING_USER_AGENT",
        "fieldtrack/0.1.0 (reverse-geocode; please set your own UA)",
    )

    LOG_LEVEL = _env("LOG_LEVEL", "INFO")


settings = Settings()
