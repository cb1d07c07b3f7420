"""
Game configuration.

Defaults can be overridden from the environment (HEXBOUND_* variables,
optionally loaded from a .env file).
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .state import GameMode


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


@dataclass
class GameConfig:
    """Tunable rules and timings for one game."""
    radius: int = 2
    win_target: int = 10
    mode: GameMode = GameMode.STANDARD
    friendly_robber: bool = False
    robber_count: int = 1
    discard_threshold: int = 7  # Players holding more than this discard half
    starting_hand: int = 2  # Wood, brick, sheep and wheat each player is dealt from the bank
    trade_timeout: float = 30.0  # Seconds before a pending offer lapses
    ai_think_delay: float = 1.0  # Seconds before a scripted player acts
    expand_every: int = 3  # Rotations between growth events
    max_radius: int = 5
    shrink_grace: int = 2  # Rotations before the first shrink
    shrink_every: int = 2  # Rotations between shrink events
    seed: Optional[int] = None
    history_size: int = 5
    environment: str = "development"

    def __post_init__(self):
        if self.radius < 1:
            raise ValueError(f"Board radius must be at least 1, got {self.radius}")
        if self.robber_count < 1:
            raise ValueError(f"At least one robber is required, got {self.robber_count}")
        if self.starting_hand < 0:
            raise ValueError(f"Starting hand cannot be negative, got {self.starting_hand}")

    @classmethod
    def from_env(cls) -> "GameConfig":
        """Build a config from HEXBOUND_* environment variables."""
        load_dotenv()
        return cls(
            radius=_env_int("HEXBOUND_RADIUS", 2),
            win_target=_env_int("HEXBOUND_WIN_TARGET", 10),
            mode=GameMode(os.getenv("HEXBOUND_MODE", GameMode.STANDARD.value)),
            friendly_robber=_env_bool("HEXBOUND_FRIENDLY_ROBBER", False),
            robber_count=_env_int("HEXBOUND_ROBBER_COUNT", 1),
            discard_threshold=_env_int("HEXBOUND_DISCARD_THRESHOLD", 7),
            starting_hand=_env_int("HEXBOUND_STARTING_HAND", 2),
            trade_timeout=_env_float("HEXBOUND_TRADE_TIMEOUT", 30.0),
            ai_think_delay=_env_float("HEXBOUND_AI_THINK_DELAY", 1.0),
            expand_every=_env_int("HEXBOUND_EXPAND_EVERY", 3),
            max_radius=_env_int("HEXBOUND_MAX_RADIUS", 5),
            shrink_grace=_env_int("HEXBOUND_SHRINK_GRACE", 2),
            shrink_every=_env_int("HEXBOUND_SHRINK_EVERY", 2),
            seed=_env_int("HEXBOUND_SEED", None),
            history_size=_env_int("HEXBOUND_HISTORY_SIZE", 5),
            environment=os.getenv("ENVIRONMENT", "development"),
        )
