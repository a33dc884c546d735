"""
Core settings and environment variables for RapidAid Dispatch.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """
    
    # Application
    APP_NAME: str = "RapidAid Dispatch"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    
    # CORS - Frontend URLs allowed to access this API (comma-separated)
    CORS_ORIGINS: str = "http://localhost:3001,http://localhost:5173,http://localhost:5174,http://127.0.0.1:5173"
    
    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    
    # In-process stores for local development without Firebase credentials
    USE_MOCK_DB: bool = False
    
    # Push notifications (FCM). When disabled, sends are logged only.
    PUSH_ENABLED: bool = True
    ANDROID_CHANNEL_ID: str = "emergency_alerts"
    
    # Aggregation: reports of the same type within this radius and window
    # are merged into one incident instead of being dispatched again.
    AGGREGATION_WINDOW_SECONDS: int = 90
    AGGREGATION_RADIUS_METERS: float = 10.0
    EARTH_RADIUS_KM: float = 6371.0
    
    # Serialize the merge-or-dispatch decision per alert type (single process only)
    SERIALIZE_AGGREGATION: bool = True
    
    # Listing caps
    ALERT_LIST_LIMIT: int = 100
    FACILITY_ALERT_LIMIT: int = 50
    
    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


# Global settings instance
settings = Settings()
