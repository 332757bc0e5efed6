"""Configuration module for Context Reminders.

This module provides configuration settings using Pydantic Settings.
Environment variables can be used to override default values.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for Context Reminders.

    All settings can be overridden via environment variables.
    Example: export OPENWEATHER_API_KEY="..."
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./reminders.db"
    """Database connection URL. Default: SQLite file in current directory"""

    # API Server Configuration
    API_HOST: str = "0.0.0.0"
    """API server host address"""

    API_PORT: int = 8005
    """API server port"""

    # MCP Server Configuration
    MCP_HOST: str = "127.0.0.1"
    """MCP server host address"""

    MCP_PORT: int = 8006
    """MCP server port for SSE transport (separate from REST API)"""

    MCP_TRANSPORT: str = "sse"
    """MCP transport type: 'stdio' for local, 'sse' for network access"""

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    LOG_DIR: str = ""
    """Directory for rotating log files. Empty: ./logs beside the code"""

    MAX_REMINDERS_PER_USER: int = 1000
    """Maximum number of reminders allowed per user"""

    # Sweep Configuration
    SWEEP_ENABLED: bool = True
    """Enable/disable the periodic trigger sweep"""

    SWEEP_INTERVAL_SECONDS: int = 900
    """Seconds between sweeps (default: 15 minutes)"""

    LOCATION_MAX_AGE_SECONDS: int = 3600
    """Device location reports older than this are treated as unavailable"""

    # Weather Configuration
    OPENWEATHER_API_KEY: str = ""
    """OpenWeatherMap API key. Empty disables weather lookups"""

    OPENWEATHER_URL: str = "https://api.openweathermap.org/data/2.5/weather"
    """OpenWeatherMap current weather endpoint"""

    WEATHER_TIMEOUT: float = 10.0

    # Notification Configuration
    NOTIFICATION_API_URL: str = "http://127.0.0.1:1801"
    """Base URL of the push notification gateway"""

    NOTIFICATION_TIMEOUT: float = 30.0

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
