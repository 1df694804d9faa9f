from __future__ import annotations

import logging
import os
from functools import lru_cache
from importlib.resources import files as resource_files
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

BALANCE_ENV_VAR = "ND_BALANCE_PATH"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class StartingStats(_Section):
    """Player snapshot at the start of every run."""

    hp: int = Field(100, gt=0)
    max_hp: int = Field(100, gt=0)
    power: int = Field(10, ge=1)
    shield: int = Field(0, ge=0)
    credits: int = Field(0, ge=0)
    security_alert: int = Field(0, ge=0, le=100)


class AlertTuning(_Section):
    floor_drift: int = Field(1, ge=0)
    miner_drift: int = Field(4, ge=0)
    shop_exit_drift: int = Field(5, ge=0)
    kill_switch_threshold: int = Field(90, ge=0, le=100)
    kill_switch_chance: float = Field(0.25, ge=0.0, le=1.0)
    hunter_alert_penalty: int = -20


class CombatTuning(_Section):
    floor_scaling: float = Field(1.035, gt=0.0)
    hard_mode_factor: float = Field(1.2, gt=0.0)
    base_enemy_power: float = Field(10, gt=0.0)
    base_enemy_hp: float = Field(20, gt=0.0)
    base_credit: float = Field(6, ge=0.0)


class EconomyTuning(_Section):
    miner_income: int = Field(10, ge=0)
    repair_base_cost: int = Field(41, ge=0)
    repair_heal: int = Field(30, ge=0)
    module_cost_growth: float = Field(1.12, ge=1.0)
    module_stack_cap: int = Field(5, ge=1)
    lockdown_price_multiplier: float = Field(1.25, ge=1.0)
    miner_purge_hp_cost: int = Field(20, ge=0)


class ContractTuning(_Section):
    capacity: int = Field(2, ge=0)
    cost_growth_per_floor: float = Field(0.05, ge=0.0)


class BalanceConfig(_Section):
    """All tunables for a run, grouped by subsystem."""

    starting: StartingStats = Field(default_factory=StartingStats)
    alert: AlertTuning = Field(default_factory=AlertTuning)
    combat: CombatTuning = Field(default_factory=CombatTuning)
    economy: EconomyTuning = Field(default_factory=EconomyTuning)
    contracts: ContractTuning = Field(default_factory=ContractTuning)

    @field_validator("starting")
    @classmethod
    def hp_within_max(cls, v: StartingStats) -> StartingStats:
        if v.hp > v.max_hp:
            raise ValueError("starting hp cannot exceed max_hp")
        return v


def _read_text(path: Optional[Union[str, Path]]) -> str:
    if path is None:
        env_path = os.getenv(BALANCE_ENV_VAR)
        if env_path:
            path = env_path
    if path is None:
        logger.debug("Loaded embedded balance resource")
        return resource_files("neon_descent.data").joinpath("balance.yaml").read_text(encoding="utf-8")
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Balance config not found: {p}")
    logger.debug("Loaded balance config from path: %s", p)
    return p.read_text(encoding="utf-8")


def load_balance(path: Optional[Union[str, Path]] = None) -> BalanceConfig:
    """Load balance configuration from YAML.

    If path is None, ND_BALANCE_PATH is consulted, then the embedded default
    resource at neon_descent/data/balance.yaml.
    """
    text = _read_text(path)
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Balance config is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Balance config must be a mapping at the top level")
    try:
        cfg = BalanceConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid balance config: {exc}") from exc
    logger.info(
        "Balance loaded: start_hp=%s scaling=%s stack_cap=%s",
        cfg.starting.hp,
        cfg.combat.floor_scaling,
        cfg.economy.module_stack_cap,
    )
    return cfg


@lru_cache(maxsize=1)
def get_balance() -> BalanceConfig:
    """Cached default balance, used when callers pass no explicit config."""
    return load_balance()
