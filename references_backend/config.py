import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

SEARCH_STRATEGIES = ("native", "memory")


@dataclass
class Settings:
    log_level: str = "INFO"
    search_strategy: str = "native"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """
    Reads service settings from the environment (and a .env file if present).
    """
    load_dotenv()
    strategy = os.getenv("SEARCH_STRATEGY", "native").strip().lower()
    if strategy not in SEARCH_STRATEGIES:
        raise ValueError(
            f"SEARCH_STRATEGY must be one of {', '.join(SEARCH_STRATEGIES)}, got {strategy!r}."
        )
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        search_strategy=strategy,
        cors_origins=origins or ["*"],
    )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
