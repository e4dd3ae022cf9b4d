"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Planner"
    debug: bool = False
    secret_key: str = "change-me-in-production"
    log_dir: str = "~/.logs/planner"

    # Server
    host: str = "0.0.0.0"  # Bind to all interfaces for external access
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./planner.db"

    # Google sign-in
    google_client_id: str = ""
    google_client_secret: str = ""
    oauth_redirect_uri: str = "http://localhost:8000/auth/callback"

    # Session persistence
    remember_session: bool = True  # False: cookie dies with the browser session
    session_max_age: int = 60 * 60 * 24 * 30


settings = Settings()
