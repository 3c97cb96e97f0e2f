"""
NodeFlow settings, read from the environment or a ``.env`` file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Server and engine settings. Names are case sensitive."""

    APP_NAME: str = "NodeFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(True, description="Expose exception details in 500 responses")
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Fallbacks for node configuration that is missing or invalid
    DEFAULT_DELAY_MS: int = Field(1000, description="Delay node wait when delayMs is unusable")
    RANDOM_DEFAULT_MIN: int = 0
    RANDOM_DEFAULT_MAX: int = 100

    AI_MOCK_LATENCY_MS: int = Field(500, description="Simulated latency of the mock AI backend")
    RUN_TIMEOUT_SECONDS: Optional[float] = Field(
        None,
        description="Deadline for a whole run; unset means runs may take as long as their nodes",
    )

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
