"""
Application configuration settings.

Responsibilities:
- Load environment variables (and a local .env file, if present)
- Configure API settings (port, prefix, CORS origin)
- Credentials and bucket/table names for the Supabase asset store and database
- Development-only switches (local image fallback, in-memory scene store)

Settings are read once when this module is imported; there is no hot reload.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME: str = "ARShare"
    API_PREFIX: str = "/api"
    PORT: int = int(os.getenv("PORT", "3000"))

    # Supabase holds both the image assets (Storage) and the scene records (Postgres)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    ASSET_BUCKET: str = os.getenv("ASSET_BUCKET", "ar-viewer")
    ASSET_FOLDER: str = os.getenv("ASSET_FOLDER", "ar_viewer")
    SCENE_TABLE: str = os.getenv("SCENE_TABLE", "ar_experiences")
    SCENE_STORE_BACKEND: str = os.getenv("SCENE_STORE_BACKEND", "supabase")

    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    SHARE_BASE_URL: str = os.getenv("SHARE_BASE_URL", "")

    MAX_IMAGE_BYTES: int = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))
    REMOTE_IMAGE_TIMEOUT: float = float(os.getenv("REMOTE_IMAGE_TIMEOUT", "15"))
    # Development only: on upload failure, keep the submitted data URL as the image URL
    ALLOW_LOCAL_IMAGE_FALLBACK: bool = _env_flag("ALLOW_LOCAL_IMAGE_FALLBACK")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "")


settings = Settings()
