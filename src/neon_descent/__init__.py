"""Neon Descent: run-state core of a floor-by-floor cyberpunk roguelike.

The package exposes immutable state snapshots (:mod:`neon_descent.models`), a
pure transition function (:func:`neon_descent.engine.step`) and a stateful
:class:`~neon_descent.engine.GameSession` for presentation layers.
"""

__version__ = "0.1.0"

from .engine import GameSession, new_game, replay, step
from .models import GameState, PlayerStats, RoomType, RunStatus

__all__ = [
    "GameSession",
    "GameState",
    "PlayerStats",
    "RoomType",
    "RunStatus",
    "__version__",
    "new_game",
    "replay",
    "step",
]
