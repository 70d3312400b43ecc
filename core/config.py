import os

from pydantic import BaseModel, Field


ENV_PREFIX = "MARKETPLACE_"


class Settings(BaseModel):
    jwt_secret: str = "dev-secret-change-me-before-deploying"
    jwt_algorithm: str = "HS256"
    token_ttl_minutes: int = Field(default=60, gt=0)
    coins_per_pickup: int = Field(default=1, gt=0)
    coins_per_cash_unit: int = Field(default=5, gt=0)
    min_exchange_coins: int = Field(default=5, gt=0)
    max_booking_days_ahead: int = Field(default=30, ge=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        return cls(**values)
