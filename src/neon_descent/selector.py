from __future__ import annotations

import logging
from typing import Tuple

from .core.random import RandomSource
from .models import RoomType

logger = logging.getLogger(__name__)

BOSS_GRACE_FLOORS = 30
EARLY_BOSS_FLOOR = 5
EARLY_BOSS_CHANCE = 0.015
HIGH_HEAT_THRESHOLD = 20
HIGH_HEAT_ELITE_SHARE = 0.6

# Cumulative upper bounds over a single uniform draw.
STANDARD_TABLE: Tuple[Tuple[float, RoomType], ...] = (
    (0.40, RoomType.ENEMY),
    (0.55, RoomType.EVENT),
    (0.65, RoomType.TREASURE),
    (0.75, RoomType.REST),
    (0.85, RoomType.MERCHANT),
    (0.95, RoomType.ELITE),
)


def boss_risk_chance(floor: int, alert: int, last_boss_floor: int) -> float:
    """Percent chance of a forced boss from avoiding one too long (0 inside the grace window)."""
    since_boss = floor - last_boss_floor
    if since_boss <= BOSS_GRACE_FLOORS:
        return 0.0
    return (since_boss - BOSS_GRACE_FLOORS) * 5 + alert * 0.5


def select_room_type(floor: int, alert: int, last_boss_floor: int, rng: RandomSource) -> RoomType:
    """Pick the category of one encounter node.

    Rules are checked in order and the first hit wins: accumulating boss
    risk, the early boss opportunity, the high-heat loot branch, then the
    standard table. Stateless apart from the draws taken from ``rng``.
    """
    chance = boss_risk_chance(floor, alert, last_boss_floor)
    if chance > 0 and rng.random() * 100 < chance:
        logger.debug("Accumulated boss risk hit: floor=%s chance=%.1f", floor, chance)
        return RoomType.BOSS

    if floor > EARLY_BOSS_FLOOR and rng.random() < EARLY_BOSS_CHANCE:
        logger.debug("Early boss opportunity on floor %s", floor)
        return RoomType.BOSS

    if alert > HIGH_HEAT_THRESHOLD and rng.random() < alert / 500:
        room = RoomType.ELITE if rng.random() < HIGH_HEAT_ELITE_SHARE else RoomType.TREASURE
        logger.debug("High heat branch: alert=%s -> %s", alert, room.value)
        return room

    roll = rng.random()
    for bound, room in STANDARD_TABLE:
        if roll < bound:
            return room
    return RoomType.ENEMY


def scout_types(floor: int, alert: int, last_boss_floor: int, rng: RandomSource) -> Tuple[RoomType, ...]:
    """Preview of the next floor: three draws at ``floor + 1`` with the current alert."""
    return tuple(select_room_type(floor + 1, alert, last_boss_floor, rng) for _ in range(3))
