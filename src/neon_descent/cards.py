from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

from .core.random import RandomSource
from .models import RoomCardData, RoomType, ShopType
from .selector import scout_types, select_room_type

logger = logging.getLogger(__name__)

NAMES: Dict[RoomType, Tuple[str, ...]] = {
    RoomType.ENEMY: ("Security Drone", "Script Kiddie", "Data Leech", "Firewall Sentinel", "Cyber-Rat"),
    RoomType.ELITE: ("Black Ice", "Corp Assassin", "Mech-Enforcer", "Netrunner Phantom"),
    RoomType.BOSS: ("Mainframe Core", "Project 2501", "CEO Avatar", "The Architect"),
    RoomType.TREASURE: ("Encrypted Cache", "Bitcoin Wallet", "Abandon Server", "Hardware Drop"),
    RoomType.REST: ("Safe House", "VPN Tunnel", "Repair Node", "Offline Shelter"),
    RoomType.EVENT: ("Glitch Storm", "Rogue AI Contact", "Corrupted Sector", "Data Surge", "Mysterious Signal"),
    RoomType.MERCHANT: ("Black Market", "Rogue Dealer", "Darknet Node", "Fence"),
}

COMBAT_ALERT_PENALTY: Dict[RoomType, int] = {
    RoomType.ENEMY: -7,
    RoomType.ELITE: -13,
    RoomType.BOSS: -30,
}

SHOP_VARIANTS: Dict[ShopType, Tuple[str, str]] = {
    ShopType.HARDWARE: ("Hardware Outpost", "Defensive upgrades and core systems."),
    ShopType.SOFTWARE: ("Software Den", "Utility scripts and offensive protocols."),
    ShopType.GENERAL: ("Black Market", "Anything and everything. For a price."),
}

TREASURE_ALERT_PENALTY = 5
MERCHANT_ALERT_PENALTY = 5
DEEP_REBOOT_CHANCE = 0.3
DEEP_REBOOT_ALERT_PENALTY = 15
DEEP_REBOOT_NAME = "System Reboot Node"


def difficulty_scale(floor: int) -> float:
    return 1 + floor * 0.03


def build_card(
    room_type: RoomType,
    floor: int,
    index: int,
    alert: int,
    last_boss_floor: int,
    rng: RandomSource,
) -> RoomCardData:
    """Dress one room type up as a selectable node."""
    name = rng.choice(NAMES[room_type])
    shop_type: Optional[ShopType] = None

    if room_type is RoomType.TREASURE:
        description = "Valuable resources. Risk: Increases Alert Level."
        alert_penalty = TREASURE_ALERT_PENALTY
    elif room_type is RoomType.REST:
        if rng.random() < DEEP_REBOOT_CHANCE:
            name = DEEP_REBOOT_NAME
            description = "Complete system restore (100% HP). Risk: Massive Alert Increase (+15)."
            alert_penalty = DEEP_REBOOT_ALERT_PENALTY
        else:
            description = "Network quiet zone. Repairs Integrity (40%)."
            alert_penalty = 0
    elif room_type is RoomType.EVENT:
        description = "Unpredictable interaction. Choose your approach."
        alert_penalty = 0
    elif room_type is RoomType.MERCHANT:
        shop_type = rng.choice(list(ShopType))
        name, description = SHOP_VARIANTS[shop_type]
        alert_penalty = MERCHANT_ALERT_PENALTY
    else:
        if room_type is RoomType.BOSS:
            description = "EXTREME DANGER."
        else:
            description = "Hostile entity. Combat lowers Alert Level."
        alert_penalty = COMBAT_ALERT_PENALTY[room_type]

    return RoomCardData(
        id=f"f{floor}-c{index}-{rng.token()}",
        type=room_type,
        name=name,
        description=description,
        difficulty_scale=difficulty_scale(floor),
        alert_penalty=alert_penalty,
        next_scout_info=scout_types(floor, alert, last_boss_floor, rng),
        shop_type=shop_type,
    )


def build_floor_cards(
    floor: int,
    alert: int,
    last_boss_floor: int,
    rng: RandomSource,
    forced_types: Optional[Sequence[RoomType]] = None,
) -> Tuple[RoomCardData, ...]:
    """Produce the three nodes for ``floor``.

    ``forced_types`` (a previously scouted preview) is used verbatim so the
    preview the player saw is the floor they get.
    """
    if forced_types is not None:
        if len(forced_types) != 3:
            raise ValueError(f"forced_types must hold exactly 3 room types, got {len(forced_types)}")
        types = tuple(forced_types)
    else:
        types = tuple(select_room_type(floor, alert, last_boss_floor, rng) for _ in range(3))
    logger.debug("Floor %s node types: %s (forced=%s)", floor, [t.value for t in types], forced_types is not None)
    return tuple(build_card(t, floor, i, alert, last_boss_floor, rng) for i, t in enumerate(types))
