"""
Runtime configuration read from the environment (and an optional .env file).
"""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: Optional[str] = None
    database_name: Optional[str] = None
    port: int = 8000
    log_level: str = "INFO"
    flat_shipping_fee: float = 30000
    free_shipping_threshold: float = 500000
    strict_status_transitions: bool = True
    seed_demo_data: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME"),
        port=int(os.getenv("PORT", 8000)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        flat_shipping_fee=float(os.getenv("FLAT_SHIPPING_FEE", 30000)),
        free_shipping_threshold=float(os.getenv("FREE_SHIPPING_THRESHOLD", 500000)),
        strict_status_transitions=_env_bool("STRICT_STATUS_TRANSITIONS", True),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
    )
