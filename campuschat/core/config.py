# campuschat/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
    """
    Setup environment variables.
        - ACCOUNT_ID the stable account identifier handed out by the identity provider
        - CAMPUS_ID the campus the local user belongs to (used for system auto-join)
        - STORE_BACKEND where joined conversations are persisted: "json", "redis" or "memory"
        - PRESENCE_TTL_SECONDS upper bound on how long a presence claim stays live
    """

    # Load environment variables from the .env file
    load_dotenv()

    def __init__(self, **overrides) -> None:
        self.ACCOUNT_ID: str = os.getenv("ACCOUNT_ID", "local")
        self.CAMPUS_ID: str = os.getenv("CAMPUS_ID", "")

        self.STORE_BACKEND: Literal["json", "redis", "memory"] = os.getenv("STORE_BACKEND", "json")
        self.STORE_DIR: str = os.getenv("STORE_DIR", ".campuschat")

        self.REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
        self.REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
        self.REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
        self.REDIS_SSL: bool = _env_bool("REDIS_SSL", "true")

        self.PRESENCE_TTL_SECONDS: int = int(os.getenv("PRESENCE_TTL_SECONDS", "900"))
        self.PRESENCE_MAX_ENTRIES: int = int(os.getenv("PRESENCE_MAX_ENTRIES", "8192"))
        self.PRESENCE_SWEEP_INTERVAL_SECONDS: float = float(
            os.getenv("PRESENCE_SWEEP_INTERVAL_SECONDS", "150")
        )

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def redis_url(self) -> str:
        scheme = "rediss" if self.REDIS_SSL else "redis"
        auth = f":{self.REDIS_ACCESS_KEY}@" if self.REDIS_ACCESS_KEY else ""
        return f"{scheme}://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}"


settings = Settings()
