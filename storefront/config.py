"""
Configuration management for the RBS storefront backend
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "RBS Storefront"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"  # Empty string disables the rotated file sinks

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./storefront.db"

    # Authentication
    auth_secret: str = ""  # Signs the rbs_session cookie; required for login
    session_ttl_days: int = 7
    initial_admin_email: str = ""
    initial_admin_password: str = ""

    # Password reset
    reset_token_ttl_minutes: int = 60
    reset_token_length: int = 30
    resend_api_key: str = ""
    reset_from_email: str = "Robe By Shamshad <no-reply@robebyshamshad.com>"

    # Public origin used for emailed links and OAuth callbacks
    app_base_url: str = ""

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
