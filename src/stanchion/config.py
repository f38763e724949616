"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    DATA_DIR: str = "./data"
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: list[str] = ["http://localhost:8000"]

    # Backend Configuration
    BACKEND: str = "anthropic"  # Options: anthropic, openai, mock
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-sonnet-4-5"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    MAX_TOKENS: int = 4096
    TEMPERATURE: float | None = None
    SYSTEM_PROMPT: str = (
        "You are Stanchion, a helpful assistant. Use the available tools when they help you "
        "answer, then reply to the user in plain text."
    )

    # Resilience
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_MS: float = 1000.0
    CIRCUIT_THRESHOLD: int = 5
    CIRCUIT_COOLDOWN_MS: float = 60_000.0

    # Agent loop
    MAX_TOOL_ITERATIONS: int = 20
    HEARTBEAT_INTERVAL_MS: float = 4000.0
    SESSION_HISTORY_LIMIT: int = 20
    REPLY_TIMEOUT_S: float = 300.0

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
