"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing the client and the demo server depend on lives here. The retry delay
between connect attempts, the default attempt budget and the demo stream cadence
can all be tuned from the environment (or a `.env` file) without touching code.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Client connect / retry
    SSE_RETRY_DELAY_S: float = 2.0
    SSE_MAX_RETRIES: int = 3
    SSE_CONNECT_TIMEOUT_S: float = 10.0

    # Demo server
    DEMO_EVENT_INTERVAL_S: float = 1.0
    DEMO_STREAM_DURATION_S: float = 30.0

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
