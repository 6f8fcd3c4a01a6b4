"""
Core settings and environment variables for Civic Issue Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Civic Issue Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API
    # Include common dev ports (3000, 5173, 8080). In production set this to your exact origin(s).
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost:8080"

    # Primary REST API, as seen by the client core
    API_BASE_URL: str = "http://localhost:5000/api"

    # Supabase (auth, Postgres, storage, edge functions)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None  # Used by the direct (secondary) client, RLS applies
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None  # Used by the REST API server only
    ISSUE_IMAGES_BUCKET: str = "issue-images"

    # Client session persistence
    SESSION_STORE_PATH: str = "./.civic_hub_session.json"

    # Per-call timeout for both client paths
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Auth email redirects (secondary path only)
    CONFIRMATION_REDIRECT: Optional[str] = None
    PASSWORD_RESET_REDIRECT: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
