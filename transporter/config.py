"""Game constants and environment-driven settings.

Game rules are fixed constants. The LLM connection and data directory can be
overridden from the environment (or a .env file at the repo root):

    LLM_ENDPOINT      default https://text.pollinations.ai/openai
    LLM_MODEL         default openai-large
    LLM_MAX_RETRIES   default 3
    LLM_RETRY_DELAY   default 1.0 (seconds, backoff base)
    LLM_TIMEOUT       default 60 (seconds)
    DATA_DIR          default ./data
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent

# ---------------------------------------------------------------------------
# Game rules
# ---------------------------------------------------------------------------

FLOORS = 5
INITIAL_FLOOR = 3
TOTAL_MOVES = 15
CHEAT_CODE = "42"

MARVIN_TRANSITION_MSG = (
    "The doors slide open on the ground floor. Slumped against the wall is "
    "Marvin the Paranoid Android, brain the size of a planet, staring at "
    "nothing in particular. Perhaps he could be persuaded to come along..."
)

# Autonomous conversation pacing (seconds)
AUTONOMOUS_BASE_DELAY = 1.0
AUTONOMOUS_DELAY_PER_MESSAGE = 0.25
AUTONOMOUS_MAX_TURNS = 20

# ---------------------------------------------------------------------------
# LLM connection
# ---------------------------------------------------------------------------

DEFAULT_ENDPOINT = "https://text.pollinations.ai/openai"
DEFAULT_MODEL = "openai-large"
FALLBACK_MESSAGE = "Apologies, I'm experiencing some difficulties."

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseModel):
    """Runtime settings resolved from the environment."""

    llm_endpoint: str = DEFAULT_ENDPOINT
    llm_model: str = DEFAULT_MODEL
    llm_max_retries: int = 3
    llm_retry_delay: float = 1.0
    llm_timeout: float = 60.0
    data_dir: Path = ROOT / "data"


def load_settings() -> Settings:
    load_dotenv(ROOT / ".env")
    env = {
        "llm_endpoint": os.getenv("LLM_ENDPOINT"),
        "llm_model": os.getenv("LLM_MODEL"),
        "llm_max_retries": os.getenv("LLM_MAX_RETRIES"),
        "llm_retry_delay": os.getenv("LLM_RETRY_DELAY"),
        "llm_timeout": os.getenv("LLM_TIMEOUT"),
        "data_dir": os.getenv("DATA_DIR"),
    }
    return Settings(**{k: v for k, v in env.items() if v})


def game_constants() -> dict:
    """Constants the browser client needs to render the game."""
    return {
        "floors": FLOORS,
        "initial_floor": INITIAL_FLOOR,
        "total_moves": TOTAL_MOVES,
        "marvin_transition_msg": MARVIN_TRANSITION_MSG,
    }


def configure_logging(level: str | None = None) -> None:
    """Send transporter.* log lines to stderr at LOG_LEVEL (default info).

    Runs inside the server process; uvicorn only sets up its own loggers.
    """
    level = (level or os.getenv("LOG_LEVEL") or "info").upper()
    logger = logging.getLogger("transporter")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
