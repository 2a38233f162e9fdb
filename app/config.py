import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .errors import StartupError

# The deployed frontend is always allowed in production, FRONTEND_URL adds to it
PRODUCTION_ORIGINS = ["https://social-75.vercel.app"]
DEVELOPMENT_ORIGINS = ["http://localhost:5173"]


def _env(name, default=""):
    return os.getenv(name, default).strip()


def _number(name, default, cast=float):
    raw = _env(name, str(default))
    try:
        return cast(raw)
    except ValueError as exc:
        raise StartupError(f"{name} must be numeric, got {raw!r}") from exc


def _database_url_from_env():
    url = _env("DATABASE_URL")
    if url:
        return url
    # Same pieces Docker passes to the Postgres service
    password = _env("POSTGRES_PASSWORD")
    if not password:
        return ""
    user = _env("POSTGRES_USER", "social_user")
    host = _env("POSTGRES_HOST", "db")
    db_name = _env("POSTGRES_DB", "social_cause_platform")
    return f"postgresql://{user}:{password}@{host}/{db_name}"


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    db_name: str = ""  # Overrides the database named in database_url

    pusher_app_id: str = ""
    pusher_key: str = ""
    pusher_secret: str = ""
    pusher_cluster: str = "ap2"

    ted_api_key: str = ""
    ted_api_host: str = "ted-talks-api.p.rapidapi.com"
    ngo_search_query: str = "environment"
    fetch_timeout_seconds: float = 15.0

    admin_api_key: str = ""
    frontend_url: str = ""
    environment: str = "development"
    port: int = 10000

    refresh_on_startup: bool = True
    refresh_interval_seconds: float = 6 * 60 * 60
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        load_dotenv()
        return cls(
            database_url=_database_url_from_env(),
            db_name=_env("DB_NAME"),
            pusher_app_id=_env("PUSHER_APP_ID"),
            pusher_key=_env("PUSHER_KEY"),
            pusher_secret=_env("PUSHER_SECRET"),
            pusher_cluster=_env("PUSHER_CLUSTER", "ap2"),
            ted_api_key=_env("TED_API_KEY"),
            ted_api_host=_env("TED_API_HOST", "ted-talks-api.p.rapidapi.com"),
            ngo_search_query=_env("NGO_SEARCH_QUERY", "environment"),
            fetch_timeout_seconds=_number("FETCH_TIMEOUT_SECONDS", 15),
            admin_api_key=_env("ADMIN_API_KEY"),
            frontend_url=_env("FRONTEND_URL"),
            environment=(_env("APP_ENV") or _env("NODE_ENV", "development")).lower(),
            port=_number("PORT", 10000, int),
            refresh_on_startup=_env("REFRESH_ON_STARTUP", "true").lower() not in ("0", "false", "no"),
            refresh_interval_seconds=_number("REFRESH_INTERVAL_SECONDS", 6 * 60 * 60),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def allowed_origins(self) -> List[str]:
        if not self.is_production:
            return list(DEVELOPMENT_ORIGINS)
        origins = [self.frontend_url] if self.frontend_url else []
        return origins + PRODUCTION_ORIGINS

    @property
    def pusher_configured(self) -> bool:
        return bool(self.pusher_app_id and self.pusher_key and self.pusher_secret)

    def require_database(self) -> str:
        if not self.database_url:
            raise StartupError("DATABASE_URL (or POSTGRES_PASSWORD) environment variable is not set")
        if not self.db_name:
            return self.database_url
        try:
            url = make_url(self.database_url).set(database=self.db_name)
        except ArgumentError as exc:
            raise StartupError("DATABASE_URL is not a valid connection string") from exc
        return url.render_as_string(hide_password=False)
