"""Client settings, read once from the environment (and .env)."""

import os

from dotenv import load_dotenv

load_dotenv()


class ClientSettings:
    API_BASE_URL: str = os.getenv("AR_API_BASE_URL", "http://localhost:3000")
    SHARE_ORIGIN: str = os.getenv("AR_SHARE_ORIGIN", "http://localhost:3000")
    FETCH_ATTEMPTS: int = int(os.getenv("AR_FETCH_ATTEMPTS", "3"))
    FETCH_BASE_DELAY: float = float(os.getenv("AR_FETCH_BASE_DELAY", "1.0"))
    FETCH_TIMEOUT: float = float(os.getenv("AR_FETCH_TIMEOUT", "12.0"))
    COMPOSER_STATE_FILE: str = os.getenv("AR_COMPOSER_STATE_FILE", "ar_viewer_images.json")


client_settings = ClientSettings()
