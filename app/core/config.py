from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_ignore_empty=True, extra="ignore")

    provider_url: str = Field(default="https://query2.finance.yahoo.com/v8/finance/chart", alias="CHART_PROVIDER_URL")
    request_timeout: float = Field(default=15.0, gt=0, alias="CHART_REQUEST_TIMEOUT")
    user_agent: str = Field(
        default="Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        alias="CHART_USER_AGENT",
    )
    log_level: str = Field(default="INFO", alias="CHART_LOG_LEVEL")

    @field_validator("provider_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
