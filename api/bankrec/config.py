from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field, AnyUrl

class Settings(BaseSettings):
    app_name: str = "Bank Reconciliation API"
    app_env: str = Field("development", alias="APP_ENV")
    app_url: AnyUrl | str = Field("http://localhost:3000", alias="APP_URL")

    database_url: str = Field("sqlite:///./bankrec.db", alias="DATABASE_URL")

    # |bank - book| below this counts as balanced
    balance_tolerance: Decimal = Field(Decimal("0.01"), alias="BALANCE_TOLERANCE")
    adjustment_marker: str = Field("[RECONCILIATION]", alias="ADJUSTMENT_MARKER")
    adjustment_payment_method: str = Field("reconciliation", alias="ADJUSTMENT_PAYMENT_METHOD")
    lock_completed_sessions: bool = Field(True, alias="LOCK_COMPLETED_SESSIONS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    class Config:
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
