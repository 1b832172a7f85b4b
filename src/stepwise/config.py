"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Orchestration
    PROVIDER: str = "openai-compatible"  # Options: openai-compatible, echo
    PLANNER: str = "llm"  # Options: llm, naive
    TURN_TIMEOUT_SECONDS: float | None = None

    # LLM Configuration (any OpenAI-compatible server, e.g. llama.cpp)
    LLM_BASE_URL: str = "http://127.0.0.1:8080/v1"
    LLM_API_KEY: str | None = None
    LLM_MODEL: str = "phi-3-mini-4k-instruct"
    LLM_MAX_TOKENS: int = 512
    LLM_TEMPERATURE: float = 0.2
    LLM_TOP_P: float = 0.9
    LLM_REQUEST_TIMEOUT_SECONDS: float = 120.0

    # Conversation history; in-memory when unset
    HISTORY_PATH: str | None = None

    # Tool API Keys
    SERPAPI_API_KEY: str | None = None

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
