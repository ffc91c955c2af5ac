import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Hosted backend
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_anon_key: str = Field(default="", alias="SUPABASE_ANON_KEY")
    request_timeout: float = Field(default=30.0, gt=0, alias="REQUEST_TIMEOUT")

    # Response cache
    cache_ttl_ms: int = Field(default=300_000, ge=0, alias="CACHE_TTL_MS")
    cache_max_size: int | None = Field(default=None, ge=1, alias="CACHE_MAX_SIZE")

    # Orchestrator
    slow_operation_threshold_ms: int = Field(
        default=1000, ge=0, alias="SLOW_OPERATION_THRESHOLD_MS"
    )
    single_flight: bool = Field(default=True, alias="SINGLE_FLIGHT")
    operation_timeout_ms: int | None = Field(
        default=None, gt=0, alias="OPERATION_TIMEOUT_MS"
    )

    debug: bool = Field(default=False, alias="DEBUG")


def load_settings() -> Settings:
    """Build settings from the process environment (after .env is loaded)."""
    env = {k: v for k, v in os.environ.items() if v != ""}
    return Settings.model_validate(env)


global_settings = load_settings()
