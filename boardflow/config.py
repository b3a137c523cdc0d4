"""
Runtime configuration read from the environment.

    BOARDFLOW_ENV           development | production
    BOARDFLOW_LOG_LEVEL     logging level name (default INFO)
    BOARDFLOW_HOST          bind address for `boardflow serve`
    BOARDFLOW_PORT          port for `boardflow serve`
    BOARDFLOW_NUM_PLAYERS   default player count for new games
    ALLOWED_ORIGINS         comma separated CORS origins
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os


@dataclass
class Settings:
    env: str = "development"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    default_num_players: int = 2
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def load_settings() -> Settings:
    """Build Settings from environment variables."""
    return Settings(
        env=os.getenv("BOARDFLOW_ENV", "development"),
        log_level=os.getenv("BOARDFLOW_LOG_LEVEL", "INFO"),
        host=os.getenv("BOARDFLOW_HOST", "127.0.0.1"),
        port=int(os.getenv("BOARDFLOW_PORT", "8000")),
        default_num_players=int(os.getenv("BOARDFLOW_NUM_PLAYERS", "2")),
        allowed_origins=[
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
            if origin.strip()
        ],
    )
