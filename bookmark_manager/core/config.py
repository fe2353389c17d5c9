"""
Application configuration settings
"""
import os
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # App Configuration
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = "127.0.0.1"
    PORT: int = int(os.getenv("PORT", "8000"))
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Firebase service account (used by firebase-admin for Firestore and token verification)
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    FIREBASE_CLIENT_ID: Optional[str] = None
    FIREBASE_AUTH_URI: str = "https://accounts.google.com/o/oauth2/auth"
    FIREBASE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"

    # Firebase web API key (used for end-user sign in through the Identity Toolkit REST API)
    FIREBASE_WEB_API_KEY: Optional[str] = None

    # Interactive login
    AUTH_REDIRECT_URL: str = "http://127.0.0.1:8000/api/v1/auth/callback"
    POST_LOGIN_REDIRECT: str = "/api/v1/view"
    SESSION_FILE: str = os.path.join(os.path.expanduser("~"), ".bookmark_manager", "session.json")
    TOKEN_REFRESH_MARGIN_SECONDS: int = 60
    HTTP_TIMEOUT: float = 10.0

    # Firestore layout
    BOOKMARKS_COLLECTION: str = "bookmarks"
    COUNTERS_COLLECTION: str = "_counters"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = 'ignore'

    @property
    def firebase_configured(self) -> bool:
        """Check whether service account credentials are present"""
        return bool(self.FIREBASE_PROJECT_ID and self.FIREBASE_PRIVATE_KEY and self.FIREBASE_CLIENT_EMAIL)


# Global settings instance
settings = Settings()
