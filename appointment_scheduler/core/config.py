import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DEFAULT_DATABASE_URL = "sqlite:///./appointments.db"

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), default=["http://localhost:4200"])

# "global" checks every stored appointment, "professional" only the same professional's.
CONFLICT_SCOPE_GLOBAL = "global"
CONFLICT_SCOPE_PROFESSIONAL = "professional"
CONFLICT_SCOPES = {CONFLICT_SCOPE_GLOBAL, CONFLICT_SCOPE_PROFESSIONAL}

CONFLICT_SCOPE = os.getenv("CONFLICT_SCOPE", CONFLICT_SCOPE_GLOBAL).strip().lower()
CHECK_CONFLICTS_ON_UPDATE = _get_bool(os.getenv("CHECK_CONFLICTS_ON_UPDATE"), default=False)


def validate_runtime_config() -> None:
    if CONFLICT_SCOPE not in CONFLICT_SCOPES:
        raise RuntimeError(f"CONFLICT_SCOPE must be one of: {', '.join(sorted(CONFLICT_SCOPES))}.")
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if APP_ENV.lower() == "production" and database_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point to a server database in production.")
