import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from neon_descent.config import load_balance  # noqa: E402
from neon_descent.core.random import RandomSource, RNGManager  # noqa: E402
from neon_descent.models import PlayerStats, RoomCardData, RoomType  # noqa: E402


class ScriptedRandom(RandomSource):
    """RandomSource that replays fixed draws, then keeps returning ``fallback``."""

    def __init__(self, values: Iterable[float] = (), fallback: float = 0.5) -> None:
        super().__init__(seed=0)
        self._values = list(values)
        self.fallback = fallback
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self._values:
            return self._values.pop(0)
        return self.fallback


def make_rngs(seed: int = 1, **streams: RandomSource) -> RNGManager:
    """RNGManager whose named domains (rooms/combat/events/loot) are replaced by the given sources."""
    rngs = RNGManager(seed)
    for domain, source in streams.items():
        rngs._streams[domain] = source
    return rngs


def make_player(**overrides) -> PlayerStats:
    base = dict(hp=100, max_hp=100, power=10, shield=0, credits=0, security_alert=0)
    base.update(overrides)
    return PlayerStats(**base)


def make_card(
    room_type: RoomType,
    alert_penalty: int = 0,
    scout: Optional[tuple] = None,
    name: str = "Test Node",
    **overrides,
) -> RoomCardData:
    return RoomCardData(
        id="f1-c0-test00",
        type=room_type,
        name=name,
        description="",
        difficulty_scale=1.03,
        alert_penalty=alert_penalty,
        next_scout_info=scout or (RoomType.ENEMY, RoomType.ENEMY, RoomType.ENEMY),
        **overrides,
    )


@pytest.fixture
def balance(monkeypatch):
    monkeypatch.delenv("ND_BALANCE_PATH", raising=False)
    return load_balance()


@pytest.fixture
def player():
    return make_player()
