# app/core/config.py - Centralized settings management using Pydantic
from decimal import Decimal
from pydantic import Field, field_validator, model_validator, ValidationInfo
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from typing import Annotated, List, Optional

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
]


class Settings(BaseSettings):
    """Application settings with validation and type safety"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )

    # Application Environment
    ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    DEBUG: bool = Field(default=False, description="Debug mode")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, ge=1, le=65535, description="API port")
    API_TITLE: str = Field(default="School Portal API", description="API title")
    API_VERSION: str = Field(default="1.0.0", description="API version")

    # Database Configuration
    DATABASE_URL: str = Field(..., description="Database connection URL")
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL queries")
    DATABASE_POOL_SIZE: int = Field(default=5, ge=1, le=100, description="Connection pool size")
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0, le=100, description="Max overflow connections")
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, le=300, description="Pool timeout in seconds")
    DATABASE_POOL_RECYCLE: int = Field(default=3600, ge=300, description="Pool recycle time in seconds")

    # JWT Configuration
    JWT_SECRET: str = Field(..., min_length=32, description="JWT signing secret")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=1440, ge=1, le=10080, description="Access token expiry")
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, ge=1, le=365, description="Refresh token expiry")
    JWT_ISSUER: str = Field(default="school-portal", description="JWT issuer")
    JWT_AUDIENCE: str = Field(default="school-portal-users", description="JWT audience")

    # CORS Configuration
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default=DEFAULT_CORS_ORIGINS, description="CORS allowed origins")
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True, description="Allow CORS credentials")

    # Security Configuration
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=15, description="BCrypt rounds")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="detailed", description="Log format: simple, detailed")

    # School
    SCHOOL_NAME: str = Field(default="Grace Secondary School", description="School display name")
    CURRENCY: str = Field(default="KSh", description="Currency label used in messages")

    # Fees ledger
    DEFAULT_TOTAL_FEES: Decimal = Field(default=Decimal("80000.00"), ge=0, description="Total of a newly created fees account")
    LEDGER_MAX_RETRIES: int = Field(default=3, ge=1, le=10, description="Retries on concurrent ledger updates")

    # Library
    LIBRARY_LOAN_DAYS: int = Field(default=14, ge=1, le=90, description="Loan and renewal period in days")
    LIBRARY_MAX_RENEWALS: int = Field(default=2, ge=0, le=10, description="Max renewals per loan")
    LIBRARY_DAILY_FINE: Decimal = Field(default=Decimal("10.00"), ge=0, description="Overdue fine per day")

    # Marks (component weights in percent, must add up to 100)
    MARKS_OPENING_WEIGHT: Decimal = Field(default=Decimal("15"), ge=0, le=100, description="Opening exam weight")
    MARKS_MIDTERM_WEIGHT: Decimal = Field(default=Decimal("15"), ge=0, le=100, description="Mid-term exam weight")
    MARKS_FINAL_WEIGHT: Decimal = Field(default=Decimal("70"), ge=0, le=100, description="Final exam weight")

    # Notifications
    NOTIFICATION_PUSH_URL: Optional[str] = Field(default=None, description="Push gateway URL, disabled when unset")
    NOTIFICATION_PUSH_API_KEY: Optional[str] = Field(default=None, description="Push gateway API key")
    NOTIFICATION_PUSH_TIMEOUT: int = Field(default=10, ge=1, le=120, description="Push gateway timeout")
    NOTIFICATION_DEFAULT_TTL_DAYS: int = Field(default=30, ge=1, le=365, description="Notification expiry in days")

    @field_validator("ENV")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed_envs = ["dev", "development", "staging", "prod", "production"]
        if v.lower() not in allowed_envs:
            raise ValueError(f"ENV must be one of: {allowed_envs}")
        return v.lower()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: str, info: ValidationInfo) -> str:
        if info.data.get("ENV") in ["prod", "production"] and v == "change_me_now":
            raise ValueError("JWT_SECRET must be changed in production")
        if len(v) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        allowed_prefixes = (
            "postgresql://",
            "postgresql+psycopg2://",
            "postgresql+psycopg://",
            "sqlite:///",
            "sqlite://",
        )
        if not v.startswith(allowed_prefixes):
            raise ValueError("DATABASE_URL must be a valid database connection string (postgresql, postgresql+psycopg, postgresql+psycopg2, or sqlite)")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_mark_weights(self) -> "Settings":
        total = self.MARKS_OPENING_WEIGHT + self.MARKS_MIDTERM_WEIGHT + self.MARKS_FINAL_WEIGHT
        if total != 100:
            raise ValueError(f"Mark weights must add up to 100, got {total}")
        return self

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            # Handle comma-separated string
            if v.strip():
                return [origin.strip() for origin in v.split(",") if origin.strip()]
            return list(DEFAULT_CORS_ORIGINS)
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENV in ["dev", "development"]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENV in ["prod", "production"]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Create settings instance with validation
try:
    settings = Settings()
except Exception as e:
    print(f"Configuration error: {e}")
    print("Please check your .env file and environment variables")
    raise


__all__ = ["settings", "Settings"]
