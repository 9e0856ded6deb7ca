from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )
    
    # Database
    database_url: str
    
    # Outbound messaging
    email_mode: str = "dev"  # dev | prod
    email_from: str = "noreply@locum.health"
    sendgrid_api_key: Optional[str] = None
    whatsapp_api_url: Optional[str] = None
    whatsapp_api_key: Optional[str] = None
    
    # Lifecycle windows
    invitation_ttl_hours: int = 168  # 7 days
    confirmation_window_hours: int = 24
    
    # App
    frontend_url: str = "http://localhost:3000"
    allowed_origins: Optional[str] = None  # comma-separated
    debug: bool = False


settings = Settings()
