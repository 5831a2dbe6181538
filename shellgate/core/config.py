"""
ShellGate - Configuration
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application
    APP_NAME: str = "ShellGate"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(default="production")

    # API
    API_V1_PREFIX: str = "/api/v1"
    SECRET_KEY: str = Field(...)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./shellgate.db")
    SEED_DEFAULTS: bool = True

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="/var/log/shellgate/app.log")

    # SSH bridge
    SSH_HANDSHAKE_TIMEOUT: float = 30.0  # seconds
    SSH_DIAL_TIMEOUT: float = 10.0  # seconds
    SSH_DEFAULT_COLS: int = 120
    SSH_DEFAULT_ROWS: int = 32
    SSH_TERM_TYPE: str = "xterm-256color"
    SSH_LOGIN_SHELL: str = "/bin/bash -l"
    SSH_FALLBACK_SHELL: str = "/bin/sh"

    # Unset means any host key is accepted (logged as a warning on every dial)
    SSH_KNOWN_HOSTS_FILE: Optional[str] = Field(default=None)

    # Query parameter defaults for /ws/ssh
    SSH_DEFAULT_HOST: str = "127.0.0.1"
    SSH_DEFAULT_PORT: int = 22
    SSH_DEFAULT_USER: str = "root"

    # WebSocket
    WS_READ_BUFFER_SIZE: int = 8192
    WS_ALLOWED_ORIGINS: List[str] = []
    WS_ALLOW_ANY_ORIGIN: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
