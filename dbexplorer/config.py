"""Configuration management for the explorer service"""
from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Service Configuration
    SERVICE_NAME: str = "DB Explorer"
    SERVICE_HOST: str = "127.0.0.1"
    SERVICE_PORT: int = 8765
    
    # Engine Configuration
    BACKEND_MODE: str = "local"  # "local" (SQLAlchemy) or "http" (remote engine service)
    ENGINE_URL_TEMPLATE: str = "sqlite:///{path}"
    ENGINE_SERVICE_URL: str = "http://127.0.0.1:8766"
    ENGINE_TIMEOUT: float = 300.0  # 5 minutes
    
    # Persistence
    STORE_PATH: str = str(Path.home() / ".dbexplorer" / "store.json")
    
    # State limits
    QUERY_HISTORY_LIMIT: int = 100
    RECENT_DATABASES_LIMIT: int = 10
    
    # Result shaping
    WIDGET_PREVIEW_ROWS: int = 10
    TABLE_PAGE_SIZE: int = 100
    TABLE_DATA_LIMIT: int = 100
    
    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
