"""Application settings using Pydantic Settings"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str

    APP_ENV: str = "dev"

    CSV_MAX_UPLOAD_MB: int = 5
    IMPORT_SESSION_TTL_MINUTES: int = 30
    IMPORT_NAME_MATCH_MODE: str = "fuzzy"

    DEFAULT_CURRENCY: str = "GBP"

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["dev", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of: {allowed}")
        return v

    @field_validator("IMPORT_NAME_MATCH_MODE")
    @classmethod
    def validate_name_match_mode(cls, v: str) -> str:
        allowed = ["fuzzy", "exact", "off"]
        v = v.strip().lower()
        if v not in allowed:
            raise ValueError(f"IMPORT_NAME_MATCH_MODE must be one of: {allowed}")
        return v

    @field_validator("DEFAULT_CURRENCY")
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3:
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter code")
        return v

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"

    @property
    def csv_max_upload_bytes(self) -> int:
        return self.CSV_MAX_UPLOAD_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
