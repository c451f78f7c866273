from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Code generation retries (generate -> insert under unique constraint -> regenerate on conflict)
    school_code_max_attempts: int = Field(20, alias="SCHOOL_CODE_MAX_ATTEMPTS")
    student_code_max_attempts: int = Field(10, alias="STUDENT_CODE_MAX_ATTEMPTS")
    # Optimistic-concurrency retries for read-modify-write on user records
    write_retry_attempts: int = Field(3, alias="WRITE_RETRY_ATTEMPTS")

    default_student_cap: int = Field(200, alias="DEFAULT_STUDENT_CAP")

    billing_webhook_secret: Optional[str] = Field(None, alias="BILLING_WEBHOOK_SECRET")
    billing_redirect_path: str = Field("/billing", alias="BILLING_REDIRECT_PATH")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
