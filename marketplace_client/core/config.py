import os
import platform
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel


DEFAULT_API_BASE_URL = "http://localhost:8000/api"


class Settings(BaseModel):
    """Client settings, read from MARKETPLACE_* environment variables."""
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 30.0 # seconds, applies to every request
    poll_interval: float = 30.0 # seconds between conversation list refreshes
    language: str = "en" # 'en' or 'ar'
    storage_path: Optional[str] = None # None -> ~/.marketplace_client/storage.json
    log_level: str = "INFO"
    firebase_credentials: Optional[str] = None # set -> sessions are kept in Firestore
    device_id: Optional[str] = None # Firestore session document id; None -> host name

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "api_base_url": os.getenv("MARKETPLACE_API_BASE_URL"),
            "request_timeout": os.getenv("MARKETPLACE_REQUEST_TIMEOUT"),
            "poll_interval": os.getenv("MARKETPLACE_POLL_INTERVAL"),
            "language": os.getenv("MARKETPLACE_LANGUAGE"),
            "storage_path": os.getenv("MARKETPLACE_STORAGE_PATH"),
            "log_level": os.getenv("MARKETPLACE_LOG_LEVEL"),
            "firebase_credentials": os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            "device_id": os.getenv("MARKETPLACE_DEVICE_ID"),
        }
        # Unset variables fall back to the field defaults
        return cls(**{key: value for key, value in values.items() if value})

    def resolved_device_id(self) -> str:
        return self.device_id or platform.node() or "default"

    def resolved_storage_path(self) -> str:
        if self.storage_path:
            return self.storage_path
        return os.path.join(os.path.expanduser("~"), ".marketplace_client", "storage.json")


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
