"""Runtime configuration read from HOTEL_* environment variables"""
import os
from functools import lru_cache

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Service settings; every field can be overridden from the environment"""
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=30, ge=1)
    # Upper bound on how long a request waits for a room/booking lock.
    lock_timeout_seconds: float = Field(default=5.0, gt=0)
    # Retries of booking creation after a serialization failure.
    booking_create_retries: int = Field(default=1, ge=0, le=1)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"HOTEL_{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls(**values)


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
