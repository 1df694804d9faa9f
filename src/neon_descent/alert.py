"""Security Alert (heat) meter.

The meter runs from 0 to 100 and is split into four half-open phases. Each
resolution re-reads the *current* value, so the helpers below are pure
functions of the alert level.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Optional

from .config import BalanceConfig, get_balance
from .models import PlayerStats

logger = logging.getLogger(__name__)

ALERT_MIN = 0
ALERT_MAX = 100


class AlertPhase(str, Enum):
    STEALTH = "STEALTH"
    ACTIVE_SWEEP = "ACTIVE_SWEEP"
    LOCKDOWN = "LOCKDOWN"
    KILL_SWITCH = "KILL_SWITCH"


_PHASE_TEXT = {
    AlertPhase.STEALTH: ("STEALTH MODE", "Surprise Attack (x1.7 DMG)"),
    AlertPhase.ACTIVE_SWEEP: ("ACTIVE SWEEP", "Standard Protocols | 1.3x Crypto"),
    AlertPhase.LOCKDOWN: ("LOCKDOWN", "Prices +25% | Heal -20%"),
    AlertPhase.KILL_SWITCH: ("KILL SWITCH", "HUNTER ACTIVE (25% Spawn)"),
}

STEALTH_FIRST_HIT = 1.7
SWEEP_CREDIT_BONUS = 1.3
LOCKDOWN_HEAL_MULTIPLIER = 0.8


def clamp_alert(value: int) -> int:
    return max(ALERT_MIN, min(ALERT_MAX, int(value)))


def apply_alert_delta(player: PlayerStats, delta: int) -> PlayerStats:
    """Add ``delta`` to the player's alert and clamp to [0, 100]."""
    new_alert = clamp_alert(player.security_alert + delta)
    if delta:
        logger.debug("Alert %s%s: %s -> %s", "+" if delta > 0 else "", delta, player.security_alert, new_alert)
    return replace(player, security_alert=new_alert)


def phase_for(alert: int) -> AlertPhase:
    if alert < 30:
        return AlertPhase.STEALTH
    if alert < 60:
        return AlertPhase.ACTIVE_SWEEP
    if alert < 90:
        return AlertPhase.LOCKDOWN
    return AlertPhase.KILL_SWITCH


def phase_label(alert: int) -> str:
    return _PHASE_TEXT[phase_for(alert)][0]


def phase_effect(alert: int) -> str:
    return _PHASE_TEXT[phase_for(alert)][1]


def alert_multiplier(alert: int) -> float:
    """Enemy damage scale: up to +66% at full alert."""
    return 1 + alert / 150


def reward_multiplier(alert: int) -> float:
    """Credit gain scale: up to 2x at full alert."""
    return 1 + alert / 100


def is_stealth(alert: int) -> bool:
    return phase_for(alert) is AlertPhase.STEALTH


def is_active_sweep(alert: int) -> bool:
    return phase_for(alert) is AlertPhase.ACTIVE_SWEEP


def is_lockdown(alert: int) -> bool:
    return phase_for(alert) is AlertPhase.LOCKDOWN


def sweep_bonus(alert: int) -> float:
    return SWEEP_CREDIT_BONUS if is_active_sweep(alert) else 1.0


def price_multiplier(alert: int, balance: Optional[BalanceConfig] = None) -> float:
    balance = balance or get_balance()
    return balance.economy.lockdown_price_multiplier if is_lockdown(alert) else 1.0


def heal_multiplier(alert: int) -> float:
    return LOCKDOWN_HEAL_MULTIPLIER if is_lockdown(alert) else 1.0


def kill_switch_armed(alert: int, balance: Optional[BalanceConfig] = None) -> bool:
    balance = balance or get_balance()
    return alert >= balance.alert.kill_switch_threshold
