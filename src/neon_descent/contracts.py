"""Dark contracts: timed side objectives bought at treasure nodes."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .combat import scaling_factor
from .config import BalanceConfig, get_balance
from .core.random import RandomSource
from .exceptions import ContractCapacityError, InsufficientCreditsError
from .models import Contract, ContractType, LogKind, PlayerStats, RoomType
from .upgrades import grant_random_module

logger = logging.getLogger(__name__)

CHAOS_BET_THRESHOLD = 80


class ContractEvent(str, Enum):
    COMBAT_WIN = "COMBAT_WIN"
    FLOOR_ADVANCE = "FLOOR_ADVANCE"


@dataclass(frozen=True)
class ContractTemplate:
    type: ContractType
    name: str
    description: str
    base_cost: int
    target_value: int
    duration_floors: int
    base_payout: int
    scaled_payout: bool = True
    payout_module: bool = False


TEMPLATES: Dict[ContractType, ContractTemplate] = {
    ContractType.GHOST_RUN: ContractTemplate(
        type=ContractType.GHOST_RUN,
        name="Ghost Protocol",
        description="Clear 3 floors without entering combat.",
        base_cost=30,
        target_value=3,
        duration_floors=4,
        base_payout=120,
    ),
    ContractType.WETWORK: ContractTemplate(
        type=ContractType.WETWORK,
        name="Wetwork",
        description="Eliminate an Elite target.",
        base_cost=40,
        target_value=1,
        duration_floors=5,
        base_payout=50,
        scaled_payout=False,
        payout_module=True,
    ),
    ContractType.CHAOS_BET: ContractTemplate(
        type=ContractType.CHAOS_BET,
        name="Chaos Bet",
        description=f"Push the Security Alert to {CHAOS_BET_THRESHOLD}% or higher.",
        base_cost=50,
        target_value=1,
        duration_floors=6,
        base_payout=250,
    ),
}

LogLines = Tuple[Tuple[str, LogKind], ...]


@dataclass(frozen=True)
class ContractUpdate:
    player: PlayerStats
    logs: LogLines = ()


def contract_cost(template: ContractTemplate, floor: int, balance: Optional[BalanceConfig] = None) -> int:
    balance = balance or get_balance()
    return math.ceil(template.base_cost * (1 + balance.contracts.cost_growth_per_floor * floor))


def make_contract(
    template: ContractTemplate, floor: int, rng: RandomSource, balance: Optional[BalanceConfig] = None
) -> Contract:
    balance = balance or get_balance()
    payout = template.base_payout
    if template.scaled_payout:
        payout = math.floor(template.base_payout * scaling_factor(floor, balance))
    return Contract(
        id=f"k{floor}-{template.type.value.lower()}-{rng.token()}",
        name=template.name,
        description=template.description,
        type=template.type,
        cost=contract_cost(template, floor, balance),
        payout_credits=payout,
        payout_module=template.payout_module,
        target_value=template.target_value,
        duration_floors=template.duration_floors,
        start_floor=floor,
    )


def generate_offers(floor: int, rng: RandomSource, balance: Optional[BalanceConfig] = None) -> Tuple[Contract, ...]:
    """One offer per contract type, in a fixed order."""
    return tuple(make_contract(t, floor, rng, balance) for t in TEMPLATES.values())


def sign_contract(player: PlayerStats, contract: Contract, balance: Optional[BalanceConfig] = None) -> PlayerStats:
    balance = balance or get_balance()
    if len(player.active_contracts) >= balance.contracts.capacity:
        raise ContractCapacityError(f"Already running {len(player.active_contracts)} contracts")
    if player.credits < contract.cost:
        raise InsufficientCreditsError(f"Need {contract.cost} Crypto to sign {contract.name}, have {player.credits}")
    logger.info("Contract signed: %s for %d", contract.name, contract.cost)
    return replace(
        player,
        credits=player.credits - contract.cost,
        active_contracts=player.active_contracts + (contract,),
    )


def _pay_out(
    player: PlayerStats, contract: Contract, rng: RandomSource, balance: BalanceConfig
) -> Tuple[PlayerStats, str]:
    player = replace(player, credits=player.credits + contract.payout_credits)
    message = f"Contract Complete: {contract.name} paid {contract.payout_credits} Crypto"
    if contract.payout_module:
        player, module = grant_random_module(player, rng, balance=balance)
        if module is not None:
            message += f" + {module.name}"
    logger.info("Contract completed: %s", contract.name)
    return player, message


def update_contracts(
    player: PlayerStats,
    event: ContractEvent,
    rng: RandomSource,
    room_type: Optional[RoomType] = None,
    balance: Optional[BalanceConfig] = None,
) -> ContractUpdate:
    """Advance every active contract for ``event``.

    COMBAT_WIN: ghost runs fail at once, wetwork counts elite kills.
    FLOOR_ADVANCE: ghost runs count a floor, chaos bets check the alert, then
    every remaining contract loses a floor of duration and expires at zero.
    """
    balance = balance or get_balance()
    kept: List[Contract] = []
    logs: List[Tuple[str, LogKind]] = []

    for contract in player.active_contracts:
        if event is ContractEvent.COMBAT_WIN:
            if contract.type is ContractType.GHOST_RUN:
                logs.append((f"Contract Failed: {contract.name} (combat detected)", LogKind.DANGER))
                logger.info("Contract failed: %s", contract.name)
                continue
            if contract.type is ContractType.WETWORK and room_type is RoomType.ELITE:
                contract = replace(contract, current_value=contract.current_value + 1)
        else:
            if contract.type is ContractType.GHOST_RUN:
                contract = replace(contract, current_value=contract.current_value + 1)
            elif contract.type is ContractType.CHAOS_BET and player.security_alert >= CHAOS_BET_THRESHOLD:
                contract = replace(contract, current_value=contract.target_value)

        if contract.completed:
            player, message = _pay_out(player, contract, rng, balance)
            logs.append((message, LogKind.GAIN))
            continue

        if event is ContractEvent.FLOOR_ADVANCE:
            contract = replace(contract, duration_floors=contract.duration_floors - 1)
            if contract.duration_floors <= 0:
                logs.append((f"Contract Expired: {contract.name}", LogKind.DANGER))
                logger.info("Contract expired: %s", contract.name)
                continue
        kept.append(contract)

    return ContractUpdate(player=replace(player, active_contracts=tuple(kept)), logs=tuple(logs))
