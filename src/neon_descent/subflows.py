"""Interactive sub-flows entered from event, treasure and merchant nodes.

Each flow follows the same shape: :meth:`SubFlow.enter` opens it on the run
state, :meth:`SubFlow.options` lists the labeled actions available right now,
and :meth:`SubFlow.choose` applies one of them and returns a :class:`FlowStep`.
The state machine owns everything else (pending scouted path, game over and
the floor advance), so none of that wiring is repeated here.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from .alert import apply_alert_delta, price_multiplier, reward_multiplier, sweep_bonus
from .combat import scaling_factor
from .config import BalanceConfig, get_balance
from .contracts import generate_offers, sign_contract
from .core.random import RandomSource, RNGManager
from .exceptions import IllegalActionError, InsufficientCreditsError, UnknownOptionError
from .models import (
    EventChoice,
    EventScenario,
    GameState,
    LogKind,
    PlayerStats,
    RoomCardData,
    RunStatus,
    ShopType,
    TreasureState,
    TreasureType,
)
from .resolution import alert_log_line
from .upgrades import (
    MODULES,
    RARE_EFFECTS,
    count_owned,
    grant_random_module,
    module_cost,
    modules_for_shop,
    purchase_module,
)

logger = logging.getLogger(__name__)

LogLines = Tuple[Tuple[str, LogKind], ...]


@dataclass(frozen=True)
class FlowOption:
    """One labeled action inside a sub-flow.

    ``target`` names the item the action applies to (a module id or a
    contract id); ``enabled`` is advisory and only drives presentation.
    """

    id: str
    label: str
    description: str = ""
    target: Optional[str] = None
    enabled: bool = True


@dataclass(frozen=True)
class FlowStep:
    player: PlayerStats
    logs: LogLines = ()
    narrative: str = ""
    finished: bool = False
    context: Any = None


class SubFlow(ABC):
    """Base class for the interactive sub-flows."""

    status: RunStatus

    @abstractmethod
    def enter(self, state: GameState, card: RoomCardData, rngs: RNGManager, balance: BalanceConfig) -> GameState:
        """Open the flow for ``card`` and switch the run into :attr:`status`."""

    @abstractmethod
    def options(self, state: GameState, balance: Optional[BalanceConfig] = None) -> Tuple[FlowOption, ...]:
        ...

    @abstractmethod
    def choose(
        self,
        state: GameState,
        option_id: str,
        target: Optional[str],
        rngs: RNGManager,
        balance: BalanceConfig,
    ) -> FlowStep:
        ...

    def store(self, state: GameState, context: Any) -> GameState:
        """Persist flow-private progress after a step that did not finish the flow."""
        return state

    def leave(self, state: GameState) -> GameState:
        """Clear flow-private fields once the flow is over."""
        return state

    def _find(self, state: GameState, option_id: str, target: Optional[str], balance: BalanceConfig) -> FlowOption:
        for option in self.options(state, balance):
            if option.id == option_id and (option.target is None or option.target == target):
                return option
        raise UnknownOptionError(f"{type(self).__name__}: no option {option_id!r} (target={target!r})")


# Events

SCENARIOS: Tuple[EventScenario, ...] = (
    EventScenario(
        title="Rogue AI Signal",
        description=(
            "You intercept a fragmented signal from a rogue AI. "
            "It offers power in exchange for exposing your location."
        ),
        choices=(
            EventChoice("accept_power", "Merge Protocols", "+2 RAM, +15 Alert", "High Alert"),
            EventChoice("mask_signal", "Mask Signal", "-15 Alert, -75 Crypto", "Cost: Crypto"),
            EventChoice("ignore", "Sever Connection", "No Effect", "Safe"),
        ),
    ),
    EventScenario(
        title="Corrupted Data Bank",
        description=(
            "A massive, unguarded server. It's glitching heavily. You could try to siphon "
            "funds or purge the corruption to lower your signature."
        ),
        choices=(
            EventChoice("siphon", "Siphon Funds", "Gain High Crypto, +15 Alert", "Greedy"),
            EventChoice("purge", "Purge Corruption", "-20 Alert, -3 RAM (Burnout)", "Tactical"),
            EventChoice("leave", "Leave", "No Effect", "Safe"),
        ),
    ),
    EventScenario(
        title="Security Checkpoint",
        description="You stumbled into a dormant security hub. Systems are waking up.",
        choices=(
            EventChoice("smash", "Smash Console", "-15 Alert, -10 HP (Sparks)", "Aggressive"),
            EventChoice("hack", "Inject Trojan", "+15 Alert, +1 Module (Random)", "High Risk"),
            EventChoice("stealth", "Stealth Bypass", "No Effect", "Cautious"),
        ),
    ),
)

BYPASS_CHOICES = frozenset({"ignore", "leave", "stealth"})


class EventFlow(SubFlow):
    status = RunStatus.EVENT_INTERACTION

    def enter(self, state: GameState, card: RoomCardData, rngs: RNGManager, balance: BalanceConfig) -> GameState:
        scenario = rngs.events.choice(SCENARIOS)
        logger.info("Event opened on floor %s: %s", state.floor, scenario.title)
        return replace(state, status=self.status, current_event=scenario)

    def options(self, state: GameState, balance: Optional[BalanceConfig] = None) -> Tuple[FlowOption, ...]:
        if state.current_event is None:
            return ()
        return tuple(FlowOption(c.id, c.text, c.description) for c in state.current_event.choices)

    def leave(self, state: GameState) -> GameState:
        return replace(state, current_event=None)

    def choose(
        self,
        state: GameState,
        option_id: str,
        target: Optional[str],
        rngs: RNGManager,
        balance: BalanceConfig,
    ) -> FlowStep:
        self._find(state, option_id, target, balance)
        player, alert_change, message, narrative = self._apply(
            option_id, state.player, state.floor, rngs.events, balance
        )
        player = apply_alert_delta(player, alert_change)
        kind = LogKind.DANGER if alert_change > 0 else LogKind.GAIN
        logger.info("Event choice %s: alert %+d", option_id, alert_change)
        return FlowStep(player=player, logs=((message, kind),), narrative=narrative, finished=True)

    @staticmethod
    def _apply(
        choice_id: str, player: PlayerStats, floor: int, rng: RandomSource, balance: BalanceConfig
    ) -> Tuple[PlayerStats, int, str, str]:
        if choice_id == "accept_power":
            return (
                replace(player, power=player.power + 2),
                15,
                "Merged with Rogue AI: +2 RAM, +15 Alert",
                "You accepted the raw data stream. Your processing power surged, "
                "but the massive signal spike alerted every subsystem in the sector.",
            )
        if choice_id == "mask_signal":
            return (
                replace(player, credits=max(0, player.credits - 75)),
                -15,
                "Signal Masked: -15 Alert, -75 Crypto",
                "You spent heavy resources to scramble your digital footprint, confusing local scanners.",
            )
        if choice_id == "siphon":
            gain = math.floor(100 * (1 + floor * 0.1))
            return (
                replace(player, credits=player.credits + gain),
                15,
                f"Siphoned Funds: +{gain} Crypto, +15 Alert",
                "Greed is good. You drained the accounts, but the theft didn't go unnoticed.",
            )
        if choice_id == "purge":
            return (
                replace(player, power=max(1, player.power - 3)),
                -20,
                "System Purge: -20 Alert, -3 RAM",
                "You actively hunted down and deleted your own logs from the corrupted server, "
                "frying some of your circuits in the process.",
            )
        if choice_id == "smash":
            return (
                replace(player, hp=max(1, player.hp - 10)),
                -15,
                "Console Destroyed: -15 Alert, -10 Integrity",
                "Subtlety is overrated. You smashed the surveillance hub before it could broadcast, "
                "taking some feedback damage.",
            )
        if choice_id == "hack":
            player, module = grant_random_module(player, rng, balance=balance)
            if module is None:
                return (
                    player,
                    15,
                    "Trojan Installed: payload rejected (stack full), +15 Alert",
                    "You risked detection to inject a worm. It came back with nothing you could still install.",
                )
            return (
                player,
                15,
                f"Trojan Installed: Acquired {module.name}, +15 Alert",
                f"You risked detection to inject a worm. It returned with a payload: {module.name}.",
            )
        if choice_id in BYPASS_CHOICES:
            return (
                player,
                0,
                "Event Bypassed.",
                "You chose not to interact with the anomaly, slipping away unseen.",
            )
        raise UnknownOptionError(f"Unhandled event choice: {choice_id}")


# Treasure

DATA_CACHE_EXTRACT_BASE = 40
DATA_CACHE_BREACH_BASE = 60
DATA_CACHE_CORE_BASE = 100
BREACH_HP_COST = 15
BREACH_ALERT = 10
EXTRACT_ALERT = 5
DECRYPT_HP_COST = 10
DECRYPT_ALERT = 15
DECRYPT_MIN_POWER = 15
MINER_INSTALL_ALERT = 10

TREASURE_LABELS = {
    TreasureType.DATA_CACHE: "Data Cache",
    TreasureType.DARK_CONTRACT: "Dark Contract Broker",
    TreasureType.CRYPTO_MINER: "Crypto Miner Rig",
}


def treasure_weights(floor: int) -> Dict[TreasureType, float]:
    """Sub-type odds by depth: early floors lean on data caches."""
    if floor <= 5:
        return {TreasureType.DATA_CACHE: 70, TreasureType.DARK_CONTRACT: 15, TreasureType.CRYPTO_MINER: 15}
    if floor <= 15:
        return {TreasureType.DATA_CACHE: 50, TreasureType.DARK_CONTRACT: 25, TreasureType.CRYPTO_MINER: 25}
    return {TreasureType.DATA_CACHE: 35, TreasureType.DARK_CONTRACT: 35, TreasureType.CRYPTO_MINER: 30}


def cache_credits(base: int, floor: int, alert: int, balance: Optional[BalanceConfig] = None) -> int:
    return math.floor(base * scaling_factor(floor, balance) * reward_multiplier(alert) * sweep_bonus(alert))


class TreasureFlow(SubFlow):
    status = RunStatus.TREASURE_INTERACTION

    def enter(self, state: GameState, card: RoomCardData, rngs: RNGManager, balance: BalanceConfig) -> GameState:
        kind = rngs.loot.weighted_choice(treasure_weights(state.floor))
        if kind is TreasureType.CRYPTO_MINER and state.player.has_crypto_miner:
            kind = TreasureType.DATA_CACHE
        offers = generate_offers(state.floor, rngs.loot, balance) if kind is TreasureType.DARK_CONTRACT else ()
        logger.info("Treasure opened on floor %s: %s", state.floor, kind.value)
        treasure = TreasureState(type=kind, contract_offers=offers)
        state = replace(state, status=self.status, current_treasure=treasure)
        return state.with_log(f"Accessed {TREASURE_LABELS[kind]}.", LogKind.INFO)

    def store(self, state: GameState, context: Any) -> GameState:
        return replace(state, current_treasure=context)

    def leave(self, state: GameState) -> GameState:
        return replace(state, current_treasure=None)

    def options(self, state: GameState, balance: Optional[BalanceConfig] = None) -> Tuple[FlowOption, ...]:
        balance = balance or get_balance()
        treasure = state.current_treasure
        player = state.player
        if treasure is None:
            return ()
        if treasure.type is TreasureType.CRYPTO_MINER:
            return (
                FlowOption(
                    "install",
                    "Install Miner",
                    f"+{balance.economy.miner_income} Crypto per node, +{MINER_INSTALL_ALERT} Alert",
                ),
                FlowOption("ignore", "Ignore", "No Effect"),
            )
        if treasure.type is TreasureType.DARK_CONTRACT:
            full = len(player.active_contracts) >= balance.contracts.capacity
            signs = tuple(
                FlowOption(
                    "sign",
                    f"Sign {offer.name}",
                    f"{offer.description} Cost {offer.cost}, pays {offer.payout_text}.",
                    target=offer.id,
                    enabled=not full and player.credits >= offer.cost,
                )
                for offer in treasure.contract_offers
            )
            return signs + (FlowOption("leave", "Leave", "No Effect"),)
        if treasure.layer == 1:
            return (
                FlowOption("extract", "Extract", f"Modest Crypto, +{EXTRACT_ALERT} Alert"),
                FlowOption("breach", "Breach Layer 2", f"-{BREACH_HP_COST} HP, +{BREACH_ALERT} Alert"),
            )
        return (
            FlowOption("leave", "Leave", "Keep what you have"),
            FlowOption(
                "decrypt",
                "Decrypt Core",
                f"Requires {DECRYPT_MIN_POWER} RAM. -{DECRYPT_HP_COST} HP, +{DECRYPT_ALERT} Alert, rare module",
                enabled=player.power >= DECRYPT_MIN_POWER,
            ),
        )

    def choose(
        self,
        state: GameState,
        option_id: str,
        target: Optional[str],
        rngs: RNGManager,
        balance: BalanceConfig,
    ) -> FlowStep:
        self._find(state, option_id, target, balance)
        treasure = state.current_treasure
        if treasure.type is TreasureType.CRYPTO_MINER:
            return self._miner(state, option_id)
        if treasure.type is TreasureType.DARK_CONTRACT:
            return self._contracts(state, option_id, target, balance)
        return self._data_cache(state, option_id, rngs.loot, balance)

    def _miner(self, state: GameState, option_id: str) -> FlowStep:
        player = state.player
        if option_id == "ignore":
            return FlowStep(
                player=player,
                logs=(("Crypto Miner ignored.", LogKind.INFO),),
                narrative="You left the mining rig humming in the dark. Someone else can take the risk.",
                finished=True,
            )
        player = apply_alert_delta(replace(player, has_crypto_miner=True), MINER_INSTALL_ALERT)
        logger.info("Crypto miner installed on floor %s", state.floor)
        return FlowStep(
            player=player,
            logs=(
                ("Crypto Miner Installed: passive income online", LogKind.GAIN),
                alert_log_line(MINER_INSTALL_ALERT),
            ),
            narrative="You spliced a mining rig into your deck. It pays every node, but its heat never sleeps.",
            finished=True,
        )

    def _contracts(
        self, state: GameState, option_id: str, target: Optional[str], balance: BalanceConfig
    ) -> FlowStep:
        treasure = state.current_treasure
        if option_id == "leave":
            return FlowStep(
                player=state.player,
                narrative="You closed the broker channel. The offers dissolve into static.",
                finished=True,
            )
        offer = next(o for o in treasure.contract_offers if o.id == target)
        player = sign_contract(state.player, offer, balance)
        remaining = tuple(o for o in treasure.contract_offers if o.id != offer.id)
        return FlowStep(
            player=player,
            logs=((f"Contract Signed: {offer.name} (-{offer.cost} Crypto)", LogKind.INFO),),
            context=replace(treasure, contract_offers=remaining),
        )

    def _data_cache(self, state: GameState, option_id: str, rng: RandomSource, balance: BalanceConfig) -> FlowStep:
        treasure = state.current_treasure
        player = state.player
        logs: List[Tuple[str, LogKind]] = []

        if option_id == "extract":
            player = apply_alert_delta(player, EXTRACT_ALERT)
            gain = cache_credits(DATA_CACHE_EXTRACT_BASE, state.floor, player.security_alert, balance)
            player = replace(player, credits=player.credits + gain)
            logs.append(alert_log_line(EXTRACT_ALERT))
            logs.append((f"Data Extracted: +{gain} Crypto", LogKind.GAIN))
            return FlowStep(
                player=player,
                logs=tuple(logs),
                narrative="You skimmed the outer layer of the cache and pulled out before the tripwires woke.",
                finished=True,
            )

        if option_id == "leave":
            return FlowStep(
                player=player,
                narrative="You backed out of the cache with your haul intact.",
                finished=True,
            )

        if option_id == "breach":
            player = apply_alert_delta(replace(player, hp=max(0, player.hp - BREACH_HP_COST)), BREACH_ALERT)
            logs.append((f"Firewall Breached: -{BREACH_HP_COST} Integrity", LogKind.DANGER))
            logs.append(alert_log_line(BREACH_ALERT))
            if player.is_dead:
                return FlowStep(player=player, logs=tuple(logs), finished=True)
            player, module = grant_random_module(player, rng, balance=balance)
            gain = cache_credits(DATA_CACHE_BREACH_BASE, state.floor, player.security_alert, balance)
            player = replace(player, credits=player.credits + gain)
            collected = [f"credits:{gain}"]
            if module is not None:
                collected.append(f"module:{module.id}")
                logs.append((f"Layer 2 Cracked: {module.name} + {gain} Crypto", LogKind.GAIN))
            else:
                logs.append((f"Layer 2 Cracked: +{gain} Crypto (module slot full)", LogKind.GAIN))
            return FlowStep(
                player=player,
                logs=tuple(logs),
                context=replace(
                    treasure, layer=2, rewards_collected=treasure.rewards_collected + tuple(collected)
                ),
            )

        # decrypt
        if player.power < DECRYPT_MIN_POWER:
            raise IllegalActionError(f"Decrypting the core needs {DECRYPT_MIN_POWER} RAM, have {player.power}")
        player = apply_alert_delta(replace(player, hp=max(0, player.hp - DECRYPT_HP_COST)), DECRYPT_ALERT)
        logs.append((f"Core Decryption: -{DECRYPT_HP_COST} Integrity", LogKind.DANGER))
        logs.append(alert_log_line(DECRYPT_ALERT))
        if player.is_dead:
            return FlowStep(player=player, logs=tuple(logs), finished=True)
        rare_pool = [m for m in MODULES.values() if m.effect_id in RARE_EFFECTS]
        player, module = grant_random_module(player, rng, pool=rare_pool, balance=balance)
        gain = math.floor(DATA_CACHE_CORE_BASE * scaling_factor(state.floor, balance))
        player = replace(player, credits=player.credits + gain)
        found = module.name if module is not None else "nothing installable"
        logs.append((f"Core Decrypted: {found} + {gain} Crypto", LogKind.GAIN))
        return FlowStep(
            player=player,
            logs=tuple(logs),
            narrative="You cracked the cache core. Deep inside sat prototype hardware nobody was meant to see.",
            finished=True,
            context=replace(treasure, layer=3),
        )


# Merchant

class ShopFlow(SubFlow):
    status = RunStatus.SHOPPING

    def enter(self, state: GameState, card: RoomCardData, rngs: RNGManager, balance: BalanceConfig) -> GameState:
        shop_type = card.shop_type or ShopType.GENERAL
        logger.info("Shop opened on floor %s: %s", state.floor, shop_type.value)
        return replace(state, status=self.status, active_shop_type=shop_type)

    def leave(self, state: GameState) -> GameState:
        return replace(state, active_shop_type=None)

    @staticmethod
    def repair_cost(alert: int, balance: Optional[BalanceConfig] = None) -> int:
        balance = balance or get_balance()
        return math.ceil(balance.economy.repair_base_cost * price_multiplier(alert, balance))

    def options(self, state: GameState, balance: Optional[BalanceConfig] = None) -> Tuple[FlowOption, ...]:
        balance = balance or get_balance()
        player = state.player
        cap = balance.economy.module_stack_cap
        items = []
        for module in modules_for_shop(state.active_shop_type):
            owned = count_owned(player, module.id)
            price = module_cost(module, owned, player.security_alert, balance)
            items.append(
                FlowOption(
                    "buy",
                    f"{module.name} ({owned}/{cap})",
                    f"{module.description} Cost {price}",
                    target=module.id,
                    enabled=owned < cap and player.credits >= price,
                )
            )
        repair = self.repair_cost(player.security_alert, balance)
        items.append(
            FlowOption(
                "repair",
                "Emergency Repair",
                f"+{balance.economy.repair_heal} Integrity for {repair} Crypto",
                enabled=player.credits >= repair,
            )
        )
        items.append(FlowOption("leave", "Leave Shop", f"+{balance.alert.shop_exit_drift} Alert"))
        return tuple(items)

    def choose(
        self,
        state: GameState,
        option_id: str,
        target: Optional[str],
        rngs: RNGManager,
        balance: BalanceConfig,
    ) -> FlowStep:
        self._find(state, option_id, target, balance)
        player = state.player

        if option_id == "buy":
            player, cost = purchase_module(player, MODULES[target], balance)
            message = f"Purchased {MODULES[target].name} for {cost} Crypto"
            return FlowStep(player=player, logs=((message, LogKind.GAIN),))

        if option_id == "repair":
            cost = self.repair_cost(player.security_alert, balance)
            if player.credits < cost:
                raise InsufficientCreditsError(f"Need {cost} Crypto for a repair, have {player.credits}")
            player = replace(
                player,
                credits=player.credits - cost,
                hp=min(player.max_hp, player.hp + balance.economy.repair_heal),
            )
            message = f"Emergency Repair: +{balance.economy.repair_heal} Integrity for {cost} Crypto"
            return FlowStep(player=player, logs=((message, LogKind.GAIN),))

        drift = balance.alert.shop_exit_drift
        return FlowStep(
            player=apply_alert_delta(player, drift),
            logs=(alert_log_line(drift),) if drift else (),
            narrative=(
                "You jack out of the black market node. The transaction signals have slightly "
                "increased the local security alert."
            ),
            finished=True,
        )


FLOWS: Dict[RunStatus, SubFlow] = {
    RunStatus.EVENT_INTERACTION: EventFlow(),
    RunStatus.TREASURE_INTERACTION: TreasureFlow(),
    RunStatus.SHOPPING: ShopFlow(),
}
