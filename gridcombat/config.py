"""Application configuration using environment variables."""
import os
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./gridcombat.db")

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Grid
    GRID_SIZE: int = int(os.getenv("GRID_SIZE", "20"))  # 20x20 encounter grid

    # NPC targeting: relative weight of the player vs. one friendly NPC
    HOSTILE_PLAYER_TARGET_WEIGHT: int = int(os.getenv("HOSTILE_PLAYER_TARGET_WEIGHT", "2"))
    HOSTILE_ALLY_TARGET_WEIGHT: int = int(os.getenv("HOSTILE_ALLY_TARGET_WEIGHT", "1"))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
