from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

from .alert import STEALTH_FIRST_HIT, alert_multiplier, is_stealth, reward_multiplier, sweep_bonus
from .config import BalanceConfig, get_balance
from .core.random import RandomSource
from .models import PlayerStats, RoomType
from .upgrades import ModifierBundle

logger = logging.getLogger(__name__)

CLASS_MULTIPLIER: Dict[RoomType, float] = {
    RoomType.ENEMY: 1.0,
    RoomType.ELITE: 1.5,
    RoomType.BOSS: 2.5,
}

CLASS_CREDIT_MULTIPLIER: Dict[RoomType, int] = {
    RoomType.ENEMY: 1,
    RoomType.ELITE: 3,
    RoomType.BOSS: 10,
}

POWER_GAIN: Dict[RoomType, int] = {
    RoomType.ENEMY: 1,
    RoomType.ELITE: 1,
    RoomType.BOSS: 5,
}


@dataclass(frozen=True)
class CombatOutcome:
    """Result of an auto-resolved fight.

    Attributes:
        enemy_power: Per-hit enemy damage before reductions, alert already applied.
        enemy_hp: Enemy health at the start of the fight.
        effective_power: Player damage per round (base power plus thorns).
        first_hit: Damage of the opening strike.
        rounds_to_kill: Rounds needed, counting the opening strike.
        damage_per_round: Damage per enemy hit after shield and guardian.
        damage_taken: Total damage the player actually took.
        negated_rounds: Hits negated by nano armor.
        mitigated_rounds: Hits mitigated by logic bombs.
    """

    enemy_power: int
    enemy_hp: int
    effective_power: int
    first_hit: int
    rounds_to_kill: int
    damage_per_round: int
    damage_taken: int
    negated_rounds: int = 0
    mitigated_rounds: int = 0


def scaling_factor(floor: int, balance: Optional[BalanceConfig] = None) -> float:
    balance = balance or get_balance()
    return balance.combat.floor_scaling ** floor


def enemy_stats(
    room_type: RoomType, floor: int, alert: int, balance: Optional[BalanceConfig] = None
) -> tuple[int, int]:
    """Return (power, hp) for a combat node. Alert amplifies power only."""
    balance = balance or get_balance()
    scale = scaling_factor(floor, balance) * balance.combat.hard_mode_factor * CLASS_MULTIPLIER[room_type]
    power = math.floor(balance.combat.base_enemy_power * scale * alert_multiplier(alert))
    hp = math.floor(balance.combat.base_enemy_hp * scale)
    return power, hp


def rounds_to_kill(enemy_hp: int, first_hit: int, effective_power: int) -> int:
    """The opening strike plus however many full rounds finish the remainder."""
    remaining = max(0, enemy_hp - first_hit)
    return 1 + math.ceil(remaining / effective_power)


def damage_per_round(enemy_power: int, shield: int, mods: ModifierBundle) -> int:
    return max(0, enemy_power - shield - mods.flat_reduction)


def simulate_combat(
    room_type: RoomType,
    floor: int,
    player: PlayerStats,
    mods: ModifierBundle,
    rng: RandomSource,
    balance: Optional[BalanceConfig] = None,
) -> CombatOutcome:
    """Auto-resolve a fight against the node's enemy.

    ``player.security_alert`` must already include the node's alert change.
    The player always strikes first and the killing blow draws no return
    fire, so the enemy lands ``rounds_to_kill - 1`` hits. Each of those hits
    can be negated (nano armor) or, failing that, mitigated (logic bomb).
    """
    balance = balance or get_balance()
    alert = player.security_alert
    enemy_power, enemy_hp = enemy_stats(room_type, floor, alert, balance)

    effective_power = max(1, player.power + mods.power_bonus)
    first_hit = math.floor(effective_power * STEALTH_FIRST_HIT) if is_stealth(alert) else effective_power
    rounds = rounds_to_kill(enemy_hp, first_hit, effective_power)
    per_round = damage_per_round(enemy_power, player.shield, mods)

    taken = 0
    negated = 0
    mitigated = 0
    for _ in range(rounds - 1):
        if mods.negate_chance > 0 and rng.random() < mods.negate_chance:
            negated += 1
            continue
        if mods.mitigate_chance > 0 and rng.random() < mods.mitigate_chance:
            mitigated += 1
            continue
        taken += per_round

    outcome = CombatOutcome(
        enemy_power=enemy_power,
        enemy_hp=enemy_hp,
        effective_power=effective_power,
        first_hit=first_hit,
        rounds_to_kill=rounds,
        damage_per_round=per_round,
        damage_taken=taken,
        negated_rounds=negated,
        mitigated_rounds=mitigated,
    )
    logger.debug("Combat simulated: type=%s floor=%s -> %s", room_type.value, floor, outcome)
    return outcome


def combat_credit_reward(
    room_type: RoomType,
    floor: int,
    alert: int,
    mods: ModifierBundle,
    rng: RandomSource,
    balance: Optional[BalanceConfig] = None,
) -> int:
    balance = balance or get_balance()
    base = balance.combat.base_credit * scaling_factor(floor, balance) * CLASS_CREDIT_MULTIPLIER[room_type]
    variance = 0.8 + rng.random() * 0.4
    gain = math.floor(base * variance * reward_multiplier(alert) * sweep_bonus(alert))
    if mods.credit_bonus > 0:
        gain = math.floor(gain * mods.credit_multiplier)
    logger.debug(
        "Combat credits: base=%.2f variance=%.3f alert=%s miner=%.2f -> %s",
        base,
        variance,
        alert,
        mods.credit_multiplier,
        gain,
    )
    return gain
