"""Run state machine.

The run advances only through :func:`step`, a pure transition
``(GameState, action) -> GameState``. Randomness comes from an injected
:class:`~neon_descent.core.random.RNGManager`, so a seed plus the list of
accepted actions is enough to rebuild any run (see :func:`replay`).

Illegal actions (wrong status, unaffordable purchase, capped module, bad
index) leave the state untouched; the rejection is only visible in the
diagnostic log.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .alert import apply_alert_delta
from .cards import build_floor_cards
from .config import BalanceConfig, get_balance
from .contracts import ContractEvent, update_contracts
from .core.random import RNGManager
from .events import EventBus
from .exceptions import IllegalActionError, InvalidStateError, UnknownOptionError
from .models import GameState, LogKind, PlayerStats, RoomType, RunStatus
from .resolution import NextStep, resolve
from .subflows import FLOWS, FlowOption

logger = logging.getLogger(__name__)

NEW_RUN_MESSAGE = "System Online. Connection established."
RESTART_MESSAGE = "System Rebooted. New Run Initiated."
GAME_OVER_TEXT = "CRITICAL SYSTEM FAILURE. SIGNAL LOST."


# Actions, one per presentation input.

@dataclass(frozen=True)
class ResolveNode:
    index: int


@dataclass(frozen=True)
class CloseResolution:
    pass


@dataclass(frozen=True)
class ChooseEventOption:
    index: int


@dataclass(frozen=True)
class BuyModule:
    module_id: str


@dataclass(frozen=True)
class BuyRepair:
    pass


@dataclass(frozen=True)
class LeaveShop:
    pass


@dataclass(frozen=True)
class ChooseTreasureAction:
    action: str
    target: Optional[str] = None


@dataclass(frozen=True)
class PurgeMiner:
    pass


@dataclass(frozen=True)
class Restart:
    pass


Action = Union[
    ResolveNode,
    CloseResolution,
    ChooseEventOption,
    BuyModule,
    BuyRepair,
    LeaveShop,
    ChooseTreasureAction,
    PurgeMiner,
    Restart,
]

_ROUTE_STATUS = {
    NextStep.SHOP: RunStatus.SHOPPING,
    NextStep.EVENT: RunStatus.EVENT_INTERACTION,
    NextStep.TREASURE: RunStatus.TREASURE_INTERACTION,
}


def initial_player(balance: Optional[BalanceConfig] = None) -> PlayerStats:
    balance = balance or get_balance()
    s = balance.starting
    return PlayerStats(
        hp=s.hp,
        max_hp=s.max_hp,
        power=s.power,
        shield=s.shield,
        credits=s.credits,
        security_alert=s.security_alert,
    )


def new_game(rngs: RNGManager, balance: Optional[BalanceConfig] = None, message: str = NEW_RUN_MESSAGE) -> GameState:
    """Fresh run on floor 1 with a newly drawn triple of nodes."""
    balance = balance or get_balance()
    player = initial_player(balance)
    cards = build_floor_cards(1, player.security_alert, 0, rngs.rooms)
    logger.info("New run started (seed=%s)", rngs.get_master_seed_hex())
    return GameState(player=player, current_cards=cards).with_log(message, LogKind.INFO)


def advance_floor(
    state: GameState,
    player: PlayerStats,
    resolution_text: str,
    rngs: RNGManager,
    balance: Optional[BalanceConfig] = None,
    boss_defeated: bool = False,
    forced_types: Optional[Sequence[RoomType]] = None,
) -> GameState:
    """Shared floor-advance transition used by every path out of a node.

    Applies the passive drift, advances contracts, builds the next triple
    (honoring ``forced_types``) and parks the run in RESOLVING.
    """
    balance = balance or get_balance()
    next_floor = state.floor + 1
    last_boss_floor = state.floor if boss_defeated else state.last_boss_floor

    drift = balance.alert.floor_drift
    if player.has_crypto_miner:
        drift += balance.alert.miner_drift
    player = apply_alert_delta(player, drift)

    update = update_contracts(player, ContractEvent.FLOOR_ADVANCE, rngs.loot, balance=balance)
    player = update.player.normalized()
    state = state.with_logs(update.logs)

    cards = build_floor_cards(next_floor, player.security_alert, last_boss_floor, rngs.rooms, forced_types)
    logger.info(
        "Advanced to floor %s: hp=%s/%s alert=%s credits=%s",
        next_floor,
        player.hp,
        player.max_hp,
        player.security_alert,
        player.credits,
    )
    return replace(
        state,
        player=player,
        floor=next_floor,
        current_cards=cards,
        status=RunStatus.RESOLVING,
        last_boss_floor=last_boss_floor,
        last_resolution_text=resolution_text,
        pending_next_room_types=None,
        active_shop_type=None,
        current_event=None,
        current_treasure=None,
    )


def game_over(state: GameState, player: PlayerStats) -> GameState:
    logger.info("Run ended on floor %s", state.floor)
    return replace(
        state,
        player=replace(player, hp=0),
        status=RunStatus.GAME_OVER,
        last_resolution_text=GAME_OVER_TEXT,
        pending_next_room_types=None,
        active_shop_type=None,
        current_event=None,
        current_treasure=None,
    )


def _require_status(state: GameState, *allowed: RunStatus) -> None:
    if state.status not in allowed:
        expected = "/".join(s.value for s in allowed)
        raise InvalidStateError(f"Action needs status {expected}, run is {state.status.value}")


def _resolve_node(state: GameState, action: ResolveNode, rngs: RNGManager, balance: BalanceConfig) -> GameState:
    _require_status(state, RunStatus.PLAYING)
    if not 0 <= action.index < len(state.current_cards):
        raise UnknownOptionError(f"No node at index {action.index}")
    card = state.current_cards[action.index]
    result = resolve(card, state.player, state.floor, rngs, balance)
    state = state.with_logs(result.logs)

    if result.next_step is NextStep.GAME_OVER:
        return game_over(state, result.player)

    status = _ROUTE_STATUS.get(result.next_step)
    if status is not None:
        state = replace(state, player=result.player, pending_next_room_types=result.pending_types)
        return FLOWS[status].enter(state, result.card, rngs, balance)

    return advance_floor(
        state,
        result.player.normalized(),
        result.narrative,
        rngs,
        balance,
        boss_defeated=result.boss_defeated,
        forced_types=result.pending_types,
    )


def _run_flow(
    state: GameState,
    status: RunStatus,
    option_id: str,
    target: Optional[str],
    rngs: RNGManager,
    balance: BalanceConfig,
) -> GameState:
    _require_status(state, status)
    flow = FLOWS[status]
    result = flow.choose(state, option_id, target, rngs, balance)
    player = result.player.normalized()
    state = replace(state, player=player).with_logs(tuple(line for line in result.logs if line is not None))

    if player.is_dead:
        return game_over(flow.leave(state), player)
    if result.finished:
        forced = state.pending_next_room_types
        return advance_floor(flow.leave(state), player, result.narrative, rngs, balance, forced_types=forced)
    return flow.store(state, result.context)


def _close_resolution(
    state: GameState, action: CloseResolution, rngs: RNGManager, balance: BalanceConfig
) -> GameState:
    _require_status(state, RunStatus.RESOLVING)
    return replace(state, status=RunStatus.PLAYING)


def _choose_event(
    state: GameState, action: ChooseEventOption, rngs: RNGManager, balance: BalanceConfig
) -> GameState:
    _require_status(state, RunStatus.EVENT_INTERACTION)
    choices = state.current_event.choices if state.current_event is not None else ()
    if not 0 <= action.index < len(choices):
        raise UnknownOptionError(f"No event choice at index {action.index}")
    return _run_flow(state, RunStatus.EVENT_INTERACTION, choices[action.index].id, None, rngs, balance)


def _buy_module(state: GameState, action: BuyModule, rngs: RNGManager, balance: BalanceConfig) -> GameState:
    return _run_flow(state, RunStatus.SHOPPING, "buy", action.module_id, rngs, balance)


def _buy_repair(state: GameState, action: BuyRepair, rngs: RNGManager, balance: BalanceConfig) -> GameState:
    return _run_flow(state, RunStatus.SHOPPING, "repair", None, rngs, balance)


def _leave_shop(state: GameState, action: LeaveShop, rngs: RNGManager, balance: BalanceConfig) -> GameState:
    return _run_flow(state, RunStatus.SHOPPING, "leave", None, rngs, balance)


def _choose_treasure(
    state: GameState, action: ChooseTreasureAction, rngs: RNGManager, balance: BalanceConfig
) -> GameState:
    return _run_flow(state, RunStatus.TREASURE_INTERACTION, action.action, action.target, rngs, balance)


def _purge_miner(state: GameState, action: PurgeMiner, rngs: RNGManager, balance: BalanceConfig) -> GameState:
    _require_status(state, RunStatus.PLAYING)
    player = state.player
    cost = balance.economy.miner_purge_hp_cost
    if not player.has_crypto_miner:
        raise IllegalActionError("No crypto miner installed")
    if player.hp <= cost:
        raise IllegalActionError(f"Purging the miner costs {cost} Integrity, have {player.hp}")
    player = replace(player, hp=player.hp - cost, has_crypto_miner=False)
    logger.info("Crypto miner purged on floor %s", state.floor)
    return replace(state, player=player).with_log(f"Crypto Miner Purged: -{cost} Integrity", LogKind.DANGER)


def _restart(state: GameState, action: Restart, rngs: RNGManager, balance: BalanceConfig) -> GameState:
    return new_game(rngs, balance, message=RESTART_MESSAGE)


_HANDLERS: Dict[type, Callable[[GameState, Any, RNGManager, BalanceConfig], GameState]] = {
    ResolveNode: _resolve_node,
    CloseResolution: _close_resolution,
    ChooseEventOption: _choose_event,
    BuyModule: _buy_module,
    BuyRepair: _buy_repair,
    LeaveShop: _leave_shop,
    ChooseTreasureAction: _choose_treasure,
    PurgeMiner: _purge_miner,
    Restart: _restart,
}


def step(
    state: GameState, action: Action, rngs: RNGManager, balance: Optional[BalanceConfig] = None
) -> GameState:
    """Apply ``action`` to ``state``.

    Returns the very same object when the action is rejected, which is how
    callers can tell an accepted action from a no-op.
    """
    balance = balance or get_balance()
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unsupported action: {action!r}")
    try:
        return handler(state, action, rngs, balance)
    except IllegalActionError as exc:
        logger.warning("Rejected %s while %s: %s", type(action).__name__, state.status.value, exc)
        return state


def available_options(state: GameState, balance: Optional[BalanceConfig] = None) -> Tuple[FlowOption, ...]:
    """Labeled actions of the open sub-flow, empty outside of one."""
    flow = FLOWS.get(state.status)
    return flow.options(state, balance) if flow is not None else ()


class GameSession:
    """Stateful wrapper for a presentation layer.

    Holds the current GameState, records every accepted action for replay and
    announces each accepted transition on an :class:`~neon_descent.events.EventBus`.
    """

    def __init__(
        self,
        seed: Union[int, str, bytes, None] = None,
        balance: Optional[BalanceConfig] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.rngs = RNGManager(seed)
        self.balance = balance or get_balance()
        self.bus = bus or EventBus()
        self.actions: List[Action] = []
        self.state = new_game(self.rngs, self.balance)

    @property
    def seed(self) -> bytes:
        """Master seed bytes; passing them to :func:`replay` rebuilds this run."""
        return bytes.fromhex(self.rngs.get_master_seed_hex())

    def dispatch(self, action: Action) -> bool:
        """Apply ``action``. Returns False when it was rejected."""
        before = self.state
        after = step(before, action, self.rngs, self.balance)
        if after is before:
            return False
        self.state = after
        self.actions.append(action)
        self.bus.announce(before, after, action, fresh_run=isinstance(action, Restart))
        return True

    def options(self) -> Tuple[FlowOption, ...]:
        return available_options(self.state, self.balance)

    def resolve_node(self, index: int) -> bool:
        return self.dispatch(ResolveNode(index))

    def close_resolution(self) -> bool:
        return self.dispatch(CloseResolution())

    def choose_event_option(self, index: int) -> bool:
        return self.dispatch(ChooseEventOption(index))

    def buy_module(self, module_id: str) -> bool:
        return self.dispatch(BuyModule(module_id))

    def buy_repair(self) -> bool:
        return self.dispatch(BuyRepair())

    def leave_shop(self) -> bool:
        return self.dispatch(LeaveShop())

    def choose_treasure_action(self, action: str, target: Optional[str] = None) -> bool:
        return self.dispatch(ChooseTreasureAction(action, target))

    def purge_miner(self) -> bool:
        return self.dispatch(PurgeMiner())

    def restart(self) -> bool:
        return self.dispatch(Restart())


def replay(
    seed: Union[int, str, bytes], actions: Sequence[Action], balance: Optional[BalanceConfig] = None
) -> GameState:
    """Rebuild the state reached by applying ``actions`` to a run seeded with ``seed``."""
    session = GameSession(seed, balance)
    for action in actions:
        session.dispatch(action)
    return session.state
