from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./school_fees.db", alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Largest custom fee/scholarship amount accepted while materializing an enrollment
    fee_override_ceiling: Decimal = Field(Decimal("1000000"), alias="FEE_OVERRIDE_CEILING")

    receipt_prefix: str = Field("RC", alias="RECEIPT_PREFIX")
    receipt_sequence_width: int = Field(6, alias="RECEIPT_SEQUENCE_WIDTH")

    # read -> compute -> write attempts on one enrollment before giving up with a conflict
    enrollment_write_retries: int = Field(3, alias="ENROLLMENT_WRITE_RETRIES")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
