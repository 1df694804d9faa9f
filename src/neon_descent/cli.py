"""``neon-descent`` console script: play a seeded run on autopilot and print a JSON summary."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from .alert import phase_label
from .config import load_balance
from .engine import (
    Action,
    BuyModule,
    BuyRepair,
    ChooseEventOption,
    ChooseTreasureAction,
    CloseResolution,
    GameSession,
    LeaveShop,
    ResolveNode,
)
from .logging_config import configure_logging
from .models import GameState, RoomType, RunStatus
from .subflows import FlowOption

logger = logging.getLogger(__name__)

# Lower is preferred when nothing more urgent applies.
NODE_PREFERENCE = {
    RoomType.ENEMY: 0,
    RoomType.TREASURE: 1,
    RoomType.EVENT: 2,
    RoomType.REST: 3,
    RoomType.MERCHANT: 4,
    RoomType.ELITE: 5,
    RoomType.BOSS: 6,
}
LOW_HP_RATIO = 0.4
HOT_ALERT = 60
SAFE_EVENT_CHOICES = ("mask_signal", "purge", "ignore", "leave", "stealth")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="neon-descent",
        description="Neon Descent - simulate a seeded run with a simple autopilot policy",
    )
    parser.add_argument("--seed", type=int, default=None, help="Master seed; omit for a random run.")
    parser.add_argument("--floors", type=int, default=10, help="Stop once this floor is reached.")
    parser.add_argument(
        "--balance",
        dest="balance_path",
        type=Path,
        default=None,
        help="Path to a balance YAML file overriding the embedded defaults.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging.")
    return parser.parse_args(argv)


def _pick_node(state: GameState) -> int:
    player = state.player
    cards = state.current_cards
    types = [c.type for c in cards]
    if player.hp < player.max_hp * LOW_HP_RATIO and RoomType.REST in types:
        return types.index(RoomType.REST)
    if player.security_alert >= HOT_ALERT:
        fights = [i for i, t in enumerate(types) if t in (RoomType.ENEMY, RoomType.ELITE)]
        if fights:
            return fights[0]
    return min(range(len(cards)), key=lambda i: NODE_PREFERENCE[types[i]])


def _pick_event(state: GameState) -> int:
    choices = state.current_event.choices
    if state.player.security_alert < 30 and state.player.hp > state.player.max_hp * 0.5:
        return 0
    for wanted in SAFE_EVENT_CHOICES:
        for i, choice in enumerate(choices):
            if choice.id == wanted and not (wanted == "mask_signal" and state.player.credits < 75):
                return i
    return len(choices) - 1


def _pick_shop(state: GameState, options: Sequence[FlowOption]) -> Action:
    player = state.player
    by_id = {o.id: o for o in options if o.target is None}
    if player.hp < player.max_hp * 0.6 and by_id["repair"].enabled:
        return BuyRepair()
    buys = [o for o in options if o.id == "buy" and o.enabled]
    if buys:
        return BuyModule(buys[0].target)
    return LeaveShop()


def _pick_treasure(state: GameState, options: Sequence[FlowOption]) -> Action:
    player = state.player
    enabled = {o.id: o for o in options if o.enabled}
    if "sign" in enabled:
        return ChooseTreasureAction("sign", enabled["sign"].target)
    if "decrypt" in enabled and player.hp > 30:
        return ChooseTreasureAction("decrypt")
    if "breach" in enabled and player.hp > 50:
        return ChooseTreasureAction("breach")
    if "install" in enabled and player.security_alert < 40:
        return ChooseTreasureAction("install")
    for fallback in ("extract", "leave", "ignore"):
        if fallback in enabled:
            return ChooseTreasureAction(fallback)
    return ChooseTreasureAction(options[-1].id, options[-1].target)


def autopilot_action(state: GameState, options: Sequence[FlowOption]) -> Action:
    """Pick the next action for ``state``. Not meant to play well, only to exercise every path."""
    if state.status is RunStatus.RESOLVING:
        return CloseResolution()
    if state.status is RunStatus.EVENT_INTERACTION:
        return ChooseEventOption(_pick_event(state))
    if state.status is RunStatus.SHOPPING:
        return _pick_shop(state, options)
    if state.status is RunStatus.TREASURE_INTERACTION:
        return _pick_treasure(state, options)
    return ResolveNode(_pick_node(state))


def run_autopilot(session: GameSession, floors: int, max_actions: int = 10_000) -> Dict[str, Any]:
    rejected = 0
    for _ in range(max_actions):
        state = session.state
        if state.status is RunStatus.GAME_OVER or (state.floor >= floors and state.status is RunStatus.PLAYING):
            break
        if not session.dispatch(autopilot_action(state, session.options())):
            # Rejected picks fall back to leaving the sub-flow.
            rejected += 1
            if state.status is RunStatus.SHOPPING:
                session.dispatch(LeaveShop())
            elif state.status is RunStatus.TREASURE_INTERACTION:
                session.dispatch(ChooseTreasureAction("leave"))
    logger.info("Autopilot stopped on floor %s with status %s", session.state.floor, session.state.status.value)
    return summarize(session, rejected)


def summarize(session: GameSession, rejected: int = 0) -> Dict[str, Any]:
    state = session.state
    p = state.player
    return {
        "seed_hex": session.rngs.get_master_seed_hex(),
        "floor": state.floor,
        "status": state.status.value,
        "actions": len(session.actions),
        "rejected_actions": rejected,
        "player": {
            "hp": p.hp,
            "max_hp": p.max_hp,
            "power": p.power,
            "shield": p.shield,
            "credits": p.credits,
            "security_alert": p.security_alert,
            "alert_phase": phase_label(p.security_alert),
            "has_crypto_miner": p.has_crypto_miner,
            "contracts": [c.name for c in p.active_contracts],
        },
        "modules": sorted(m.name for m in p.modules),
        "last_log": [e.message for e in state.history[-5:]],
    }


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(debug=args.debug)

    balance = load_balance(args.balance_path)
    session = GameSession(seed=args.seed, balance=balance)
    summary = run_autopilot(session, args.floors)
    # Print JSON summary so runs with the same seed can be diffed
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
