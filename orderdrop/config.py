"""Runtime configuration for the app, read once from the environment."""
import os
from typing import NamedTuple


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


class Settings(NamedTuple):
    database_url: str = "sqlite:///./orderdrop.db"
    session_secret: str = "dev-secret"
    session_ttl_seconds: int = 60 * 60 * 24  # 1 day
    session_cookie_name: str = "orderdrop_session"
    blob_token: str = ""
    blob_api_url: str = "https://blob.vercel-storage.com"
    blob_timeout_seconds: float = 60.0
    max_video_bytes: int = 100 * 1024 * 1024
    max_image_bytes: int = 10 * 1024 * 1024
    allow_seller_registration: bool = False
    log_level: str = "INFO"


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        session_secret=os.getenv("SESSION_SECRET", defaults.session_secret),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", defaults.session_ttl_seconds)),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", defaults.session_cookie_name),
        blob_token=os.getenv("BLOB_READ_WRITE_TOKEN", defaults.blob_token),
        blob_api_url=os.getenv("BLOB_API_URL", defaults.blob_api_url),
        blob_timeout_seconds=float(os.getenv("BLOB_TIMEOUT_SECONDS", defaults.blob_timeout_seconds)),
        max_video_bytes=int(os.getenv("MAX_VIDEO_BYTES", defaults.max_video_bytes)),
        max_image_bytes=int(os.getenv("MAX_IMAGE_BYTES", defaults.max_image_bytes)),
        allow_seller_registration=_env_bool("ALLOW_SELLER_REGISTRATION", defaults.allow_seller_registration),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
    )


state = load_settings()


def get_settings() -> Settings:
    return state

