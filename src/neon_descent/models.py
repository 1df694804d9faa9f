"""Domain types for a Neon Descent run.

Everything here is an immutable snapshot. State changes are expressed by
building new instances with :func:`dataclasses.replace`, never by mutation.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple


class RoomType(str, Enum):
    ENEMY = "ENEMY"
    ELITE = "ELITE"
    BOSS = "BOSS"
    TREASURE = "TREASURE"
    EVENT = "EVENT"
    REST = "REST"
    MERCHANT = "MERCHANT"

    @property
    def is_combat(self) -> bool:
        return self in (RoomType.ENEMY, RoomType.ELITE, RoomType.BOSS)


class ShopType(str, Enum):
    HARDWARE = "HARDWARE"
    SOFTWARE = "SOFTWARE"
    GENERAL = "GENERAL"


class TreasureType(str, Enum):
    DATA_CACHE = "DATA_CACHE"
    DARK_CONTRACT = "DARK_CONTRACT"
    CRYPTO_MINER = "CRYPTO_MINER"


class ContractType(str, Enum):
    GHOST_RUN = "GHOST_RUN"  # survive N floors without combat
    WETWORK = "WETWORK"  # kill an elite
    CHAOS_BET = "CHAOS_BET"  # reach an alert threshold


class RunStatus(str, Enum):
    PLAYING = "PLAYING"
    RESOLVING = "RESOLVING"
    SHOPPING = "SHOPPING"
    EVENT_INTERACTION = "EVENT_INTERACTION"
    TREASURE_INTERACTION = "TREASURE_INTERACTION"
    GAME_OVER = "GAME_OVER"


class LogKind(str, Enum):
    INFO = "info"
    COMBAT = "combat"
    GAIN = "gain"
    DANGER = "danger"
    ALERT = "alert"


class EffectId(str, Enum):
    VAMPIRE = "vampire"
    THORNS = "thorns"
    MINER = "miner"
    NANO_ARMOR = "nano_armor"
    OVERCLOCK = "overclock"
    LOGIC_BOMB = "logic_bomb"
    GUARDIAN = "guardian"


@dataclass(frozen=True)
class Module:
    """Static catalog entry for a passive upgrade."""

    id: str
    name: str
    description: str
    effect_id: EffectId
    cost: int


@dataclass(frozen=True)
class Contract:
    """A timed side objective signed at a Dark-Contract node.

    Attributes:
        cost: Upfront credits paid when signing.
        payout_credits: Credits granted on completion.
        payout_module: Whether completion also grants a random module.
        target_value / current_value: Progress counters.
        duration_floors: Floors left before the contract expires.
    """

    id: str
    name: str
    description: str
    type: ContractType
    cost: int
    payout_credits: int
    target_value: int
    duration_floors: int
    start_floor: int
    payout_module: bool = False
    current_value: int = 0

    @property
    def completed(self) -> bool:
        return self.current_value >= self.target_value

    @property
    def payout_text(self) -> str:
        parts = []
        if self.payout_credits:
            parts.append(f"{self.payout_credits} Crypto")
        if self.payout_module:
            parts.append("Random Module")
        return " + ".join(parts) or "Nothing"


@dataclass(frozen=True)
class PlayerStats:
    hp: int
    max_hp: int
    power: int
    shield: int
    credits: int
    security_alert: int
    modules: Tuple[Module, ...] = ()
    active_contracts: Tuple[Contract, ...] = ()
    has_crypto_miner: bool = False

    @property
    def is_dead(self) -> bool:
        return self.hp <= 0

    def normalized(self) -> "PlayerStats":
        """Return a copy with every bounded stat pulled back into its legal range."""
        max_hp = max(1, self.max_hp)
        return replace(
            self,
            max_hp=max_hp,
            hp=max(0, min(max_hp, self.hp)),
            power=max(1, self.power),
            shield=max(0, self.shield),
            credits=max(0, self.credits),
            security_alert=max(0, min(100, self.security_alert)),
        )


@dataclass(frozen=True)
class RoomCardData:
    """One selectable encounter node on the current floor."""

    id: str
    type: RoomType
    name: str
    description: str
    difficulty_scale: float
    alert_penalty: int
    next_scout_info: Tuple[RoomType, ...]
    shop_type: Optional[ShopType] = None

    def __post_init__(self) -> None:
        if len(self.next_scout_info) != 3:
            raise ValueError(f"next_scout_info must hold exactly 3 room types, got {len(self.next_scout_info)}")


@dataclass(frozen=True)
class LogEntry:
    id: str
    floor: int
    message: str
    kind: LogKind = LogKind.INFO


@dataclass(frozen=True)
class EventChoice:
    id: str
    text: str
    description: str
    risk_text: str


@dataclass(frozen=True)
class EventScenario:
    title: str
    description: str
    choices: Tuple[EventChoice, ...]


@dataclass(frozen=True)
class TreasureState:
    """Progress inside a treasure node.

    ``layer`` only matters for DATA_CACHE; ``contract_offers`` only for
    DARK_CONTRACT.
    """

    type: TreasureType
    layer: int = 1
    rewards_collected: Tuple[str, ...] = ()
    contract_offers: Tuple[Contract, ...] = ()


@dataclass(frozen=True)
class GameState:
    """Root state of a run. Replaced wholesale on restart."""

    player: PlayerStats
    floor: int = 1
    current_cards: Tuple[RoomCardData, ...] = ()
    history: Tuple[LogEntry, ...] = ()
    status: RunStatus = RunStatus.PLAYING
    last_boss_floor: int = 0
    last_resolution_text: Optional[str] = None
    pending_next_room_types: Optional[Tuple[RoomType, ...]] = None
    active_shop_type: Optional[ShopType] = None
    current_event: Optional[EventScenario] = None
    current_treasure: Optional[TreasureState] = None

    def with_log(self, message: str, kind: LogKind = LogKind.INFO) -> "GameState":
        entry = LogEntry(id=f"{self.floor}-{len(self.history)}", floor=self.floor, message=message, kind=kind)
        return replace(self, history=self.history + (entry,))

    def with_logs(self, entries: Tuple[Tuple[str, LogKind], ...]) -> "GameState":
        state = self
        for message, kind in entries:
            state = state.with_log(message, kind)
        return state


__all__ = [
    "Contract",
    "ContractType",
    "EffectId",
    "EventChoice",
    "EventScenario",
    "GameState",
    "LogEntry",
    "LogKind",
    "Module",
    "PlayerStats",
    "RoomCardData",
    "RoomType",
    "RunStatus",
    "ShopType",
    "TreasureState",
    "TreasureType",
]
