"""Per-node outcome computation.

:func:`resolve` turns one chosen node plus the current player snapshot into a
:class:`Resolution`. Combat and rest nodes resolve inline; merchant, event and
treasure nodes only report which interactive sub-flow to open, and leave the
alert untouched so the sub-flow can decide it.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from .alert import (
    alert_multiplier,
    apply_alert_delta,
    heal_multiplier,
    is_active_sweep,
    is_lockdown,
    is_stealth,
    kill_switch_armed,
    reward_multiplier,
)
from .combat import POWER_GAIN, combat_credit_reward, simulate_combat
from .config import BalanceConfig, get_balance
from .contracts import ContractEvent, update_contracts
from .core.random import RNGManager
from .models import LogKind, PlayerStats, RoomCardData, RoomType
from .upgrades import aggregate_modifiers

logger = logging.getLogger(__name__)

HUNTER_NAME = "HUNTER KILLER"
HUNTER_DESCRIPTION = "SYSTEM COUNTERMEASURE DEPLOYED. RUNTIME INTERRUPTED."
REST_HEAL_FRACTION = 0.4
DEEP_REBOOT_THRESHOLD = 10


class NextStep(str, Enum):
    """What the state machine does with a resolution."""

    ADVANCE = "ADVANCE"
    GAME_OVER = "GAME_OVER"
    SHOP = "SHOP"
    EVENT = "EVENT"
    TREASURE = "TREASURE"


_ROUTES = {
    RoomType.MERCHANT: NextStep.SHOP,
    RoomType.EVENT: NextStep.EVENT,
    RoomType.TREASURE: NextStep.TREASURE,
}


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one node.

    ``logs`` holds every history line produced, in order, including the
    summary ``log_message``. ``card`` is the node actually resolved, which
    differs from the chosen one when the kill switch fires.
    """

    player: PlayerStats
    card: RoomCardData
    next_step: NextStep
    log_message: str = ""
    narrative: str = ""
    boss_defeated: bool = False
    logs: Tuple[Tuple[str, LogKind], ...] = ()

    @property
    def pending_types(self) -> Tuple[RoomType, ...]:
        return self.card.next_scout_info


def hunter_card(card: RoomCardData, balance: Optional[BalanceConfig] = None) -> RoomCardData:
    """Rewrite ``card`` in place as the kill-switch hunter, keeping its id and scouted path."""
    balance = balance or get_balance()
    return replace(
        card,
        type=RoomType.BOSS,
        name=HUNTER_NAME,
        description=HUNTER_DESCRIPTION,
        alert_penalty=balance.alert.hunter_alert_penalty,
        shop_type=None,
    )


def roll_kill_switch(
    card: RoomCardData, player: PlayerStats, rngs: RNGManager, balance: Optional[BalanceConfig] = None
) -> Tuple[RoomCardData, bool]:
    balance = balance or get_balance()
    if not kill_switch_armed(player.security_alert, balance):
        return card, False
    if rngs.combat.random() < balance.alert.kill_switch_chance:
        logger.info("Kill switch fired at alert %s: %s replaced by hunter", player.security_alert, card.name)
        return hunter_card(card, balance), True
    return card, False


def alert_log_line(delta: int) -> Optional[Tuple[str, LogKind]]:
    if delta > 0:
        return f"Alert Increased by {delta}%", LogKind.ALERT
    if delta < 0:
        return f"Alert Decreased by {abs(delta)}%", LogKind.GAIN
    return None


def rest_heal_amount(player: PlayerStats, deep_reboot: bool) -> int:
    if deep_reboot:
        return player.max_hp - player.hp
    base = math.floor(player.max_hp * REST_HEAL_FRACTION)
    return math.floor(base * heal_multiplier(player.security_alert))


def _resolve_rest(card: RoomCardData, player: PlayerStats) -> Tuple[PlayerStats, str, str]:
    if card.alert_penalty > DEEP_REBOOT_THRESHOLD:
        player = replace(player, hp=player.max_hp)
        return (
            player,
            f"Deep System Reboot: Fully Restored. Alert +{card.alert_penalty}",
            "You initiated a complete system flush and restart. You are fully operational, "
            "but the extensive downtime revealed your location to everyone.",
        )

    lockdown = is_lockdown(player.security_alert)
    heal = rest_heal_amount(player, deep_reboot=False)
    player = replace(player, hp=min(player.max_hp, player.hp + heal))
    message = f"System Repair: +{heal} Integrity.{' (Lockdown Interference -20%)' if lockdown else ''}"
    if lockdown:
        narrative = "Network lockdown active. Repair protocols were throttled by security interference."
    else:
        narrative = "You found a quiet node to repair subroutines."
    return player, message, narrative


def _combat_log_line(damage: int, credits: int, alert: int) -> str:
    dmg_scale = alert_multiplier(alert)
    gain_scale = reward_multiplier(alert)
    parts = [f"Combat: Took {damage} DMG"]
    if dmg_scale > 1.1:
        parts.append(f" (High Alert: Enemy DMG +{math.floor((dmg_scale - 1) * 100)}%)")
    parts.append(f". Gained {credits} Crypto")
    if gain_scale > 1.1:
        parts.append(f" (High Heat: +{math.floor((gain_scale - 1) * 100)}% Crypto)")
    if is_active_sweep(alert):
        parts.append(" (Active Sweep: x1.3 Crypto)")
    parts.append(".")
    if is_stealth(alert):
        parts.append(" (Stealth: First Hit x1.7)")
    return "".join(parts)


def resolve(
    card: RoomCardData,
    player: PlayerStats,
    floor: int,
    rngs: RNGManager,
    balance: Optional[BalanceConfig] = None,
) -> Resolution:
    """Resolve ``card`` for ``player`` on ``floor``.

    Order of operations: kill-switch roll, sub-flow routing, miner income,
    the node's alert delta, then the type-specific math which reads the
    post-change alert. Combat damage and the vampire heal are netted first;
    if that leaves the player at 0 HP the fight stops with
    ``NextStep.GAME_OVER`` and no credits, power or contract updates apply.
    """
    balance = balance or get_balance()
    logs: List[Tuple[str, LogKind]] = []

    card, hunted = roll_kill_switch(card, player, rngs, balance)
    if hunted:
        logs.append(("KILL SWITCH TRIGGERED: HUNTER SPAWNED", LogKind.DANGER))

    route = _ROUTES.get(card.type)
    if route is not None:
        logger.debug("Node %s routes to sub-flow %s", card.id, route.value)
        return Resolution(
            player=player,
            card=card,
            next_step=route,
            logs=tuple(logs),
        )

    if player.has_crypto_miner:
        income = balance.economy.miner_income
        player = replace(player, credits=player.credits + income)
        logs.append((f"Crypto Miner: +{income} Crypto", LogKind.GAIN))

    player = apply_alert_delta(player, card.alert_penalty)
    alert_line = alert_log_line(card.alert_penalty)
    if alert_line is not None:
        logs.append(alert_line)

    if card.type is RoomType.REST:
        player, message, narrative = _resolve_rest(card, player)
        logs.append((message, LogKind.GAIN))
        logger.info("Rest resolved on floor %s: hp=%s/%s", floor, player.hp, player.max_hp)
        return Resolution(
            player=player,
            card=card,
            next_step=NextStep.ADVANCE,
            log_message=message,
            narrative=narrative,
            logs=tuple(logs),
        )

    mods = aggregate_modifiers(player.modules)
    outcome = simulate_combat(card.type, floor, player, mods, rngs.combat, balance)
    # vampire heal lands before the death check
    hp = min(player.max_hp, player.hp - outcome.damage_taken + mods.heal_on_kill)
    alert = player.security_alert

    if hp <= 0:
        player = replace(player, hp=0)
        message = f"Combat: Took {outcome.damage_taken} DMG. {card.name} terminated your connection."
        logs.append((message, LogKind.DANGER))
        logger.info("Player destroyed by %s on floor %s", card.name, floor)
        return Resolution(
            player=player,
            card=card,
            next_step=NextStep.GAME_OVER,
            log_message=message,
            logs=tuple(logs),
        )

    credits = combat_credit_reward(card.type, floor, alert, mods, rngs.combat, balance)
    player = replace(
        player,
        hp=hp,
        power=player.power + POWER_GAIN[card.type],
        credits=player.credits + credits,
    )
    message = _combat_log_line(outcome.damage_taken, credits, alert)
    logs.append((message, LogKind.COMBAT))

    update = update_contracts(player, ContractEvent.COMBAT_WIN, rngs.loot, room_type=card.type, balance=balance)
    player = update.player
    logs.extend(update.logs)

    if card.name == HUNTER_NAME:
        narrative = "INTERCEPTION! The System Hunter found you. You barely survived the ambush."
    else:
        narrative = (
            f"You engaged the {card.name}. Security alert: {alert}%. "
            f"Enemy strikes amplified by {math.floor((alert_multiplier(alert) - 1) * 100)}%. "
            f"Firewall held for {outcome.rounds_to_kill} cycles."
        )
    logger.info(
        "Combat won on floor %s vs %s: damage=%s credits=%s rounds=%s",
        floor,
        card.type.value,
        outcome.damage_taken,
        credits,
        outcome.rounds_to_kill,
    )
    return Resolution(
        player=player,
        card=card,
        next_step=NextStep.ADVANCE,
        log_message=message,
        narrative=narrative,
        boss_defeated=card.type is RoomType.BOSS,
        logs=tuple(logs),
    )
