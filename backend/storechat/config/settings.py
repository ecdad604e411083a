# /storechat/config/settings.py

import sys
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "storechat"
    max_pool_size: int = 10
    min_pool_size: int = 1
    mongo_tls: bool = False

    # Gemini
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_timeout_seconds: float = 10.0

    # Facebook / Messenger
    facebook_app_id: str | None = None
    facebook_app_secret: str | None = None
    facebook_verify_token: str
    facebook_redirect_uri: str | None = None
    graph_api_base_url: str = "https://graph.facebook.com/v18.0"
    facebook_dialog_url: str = "https://www.facebook.com/v18.0/dialog/oauth"
    oauth_success_url: str = "/oauth-success.html"
    oauth_error_url: str = "/oauth-error.html"

    # Security
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_days: int = 7
    oauth_state_expire_minutes: int = 15
    admin_username: str = "admin"
    admin_password: str | None = None
    api_key: str | None = None

    # Tenant quota
    default_free_messages: int = 50

    # Deployment
    workers: int = 4
    environment: str = "production"
    log_level: str = "INFO"
    cors_allowed_origins: str = Field(default="http://localhost:3000")

    # App Metadata & Limits
    api_version: str = "v1"
    rate_limit_per_minute: int = 100
    auth_rate_limit_per_minute: int = 5

    # ---------------- Validators ---------------- #

    @field_validator("jwt_secret_key")
    @classmethod
    def key_length_must_be_sufficient(cls, v):
        if len(v) < 32:
            raise ValueError("JWT secret key must be at least 32 characters long")
        return v

    @field_validator("gemini_timeout_seconds")
    @classmethod
    def timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("GEMINI_TIMEOUT_SECONDS must be positive")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.environment == "production":
            for var in ["gemini_api_key", "admin_password", "facebook_app_secret"]:
                if not getattr(settings_obj, var):
                    raise ValueError(f"{var.upper()} is required in production")

        return settings_obj

    except ValueError as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
