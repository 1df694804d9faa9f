from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .alert import price_multiplier
from .config import BalanceConfig, get_balance
from .core.random import RandomSource
from .exceptions import InsufficientCreditsError, StackLimitError, UnknownOptionError
from .models import EffectId, Module, PlayerStats, ShopType

logger = logging.getLogger(__name__)


MODULES: Dict[str, Module] = {
    "m1": Module("m1", "Vampire Kernel", "Recover 2 HP when destroying enemies.", EffectId.VAMPIRE, 75),
    "m2": Module("m2", "Thorns Protocol", "Deals 3 DMG to attacker per cycle.", EffectId.THORNS, 101),
    "m3": Module("m3", "Crypto Miner", "+20% Crypto gain from all sources.", EffectId.MINER, 60),
    "m4": Module("m4", "Nano-Armor", "+8% chance to Negate all damage.", EffectId.NANO_ARMOR, 126),
    "m5": Module("m5", "Overclock", "+3 RAM, but -10 Max Integrity.", EffectId.OVERCLOCK, 90),
    "m6": Module("m6", "Logic Bomb", "12% chance to mitigate a hit entirely.", EffectId.LOGIC_BOMB, 113),
    "m7": Module("m7", "Guardian Angel", "Flat -2 Damage reduction.", EffectId.GUARDIAN, 143),
}

DEFENSIVE_EFFECTS = frozenset({EffectId.NANO_ARMOR, EffectId.OVERCLOCK, EffectId.GUARDIAN})
OFFENSIVE_EFFECTS = frozenset({EffectId.VAMPIRE, EffectId.THORNS, EffectId.MINER, EffectId.LOGIC_BOMB})
RARE_EFFECTS = frozenset({EffectId.NANO_ARMOR, EffectId.LOGIC_BOMB, EffectId.GUARDIAN})

OVERCLOCK_POWER = 3
OVERCLOCK_MAX_HP = 10


@dataclass(frozen=True)
class ModifierBundle:
    """Aggregated effect of every owned module.

    Combat and economy math read only this bundle, so the numbers shown in
    tooltips and the numbers used in resolution come from the same place.

    - power_bonus: flat bonus to effective combat power (thorns).
    - flat_reduction: flat damage reduction per enemy hit (guardian).
    - negate_chance: per-round chance to negate a hit (nano armor).
    - mitigate_chance: per-round chance to mitigate a hit (logic bomb).
    - heal_on_kill: HP recovered after a won fight (vampire).
    - credit_bonus: additive bonus on combat credit gains (miner).
    """

    power_bonus: int = 0
    flat_reduction: int = 0
    negate_chance: float = 0.0
    mitigate_chance: float = 0.0
    heal_on_kill: int = 0
    credit_bonus: float = 0.0

    @property
    def credit_multiplier(self) -> float:
        return 1.0 + self.credit_bonus

    def combine(self, other: ModifierBundle) -> ModifierBundle:
        return ModifierBundle(
            power_bonus=self.power_bonus + other.power_bonus,
            flat_reduction=self.flat_reduction + other.flat_reduction,
            negate_chance=self.negate_chance + other.negate_chance,
            mitigate_chance=self.mitigate_chance + other.mitigate_chance,
            heal_on_kill=self.heal_on_kill + other.heal_on_kill,
            credit_bonus=self.credit_bonus + other.credit_bonus,
        )

    def scaled(self, count: int) -> ModifierBundle:
        return ModifierBundle(
            power_bonus=self.power_bonus * count,
            flat_reduction=self.flat_reduction * count,
            negate_chance=self.negate_chance * count,
            mitigate_chance=self.mitigate_chance * count,
            heal_on_kill=self.heal_on_kill * count,
            credit_bonus=self.credit_bonus * count,
        )


# Overclock has no per-combat bundle; it changes stats once at acquisition.
EFFECT_BUNDLES: Dict[EffectId, ModifierBundle] = {
    EffectId.VAMPIRE: ModifierBundle(heal_on_kill=2),
    EffectId.THORNS: ModifierBundle(power_bonus=3),
    EffectId.MINER: ModifierBundle(credit_bonus=0.2),
    EffectId.NANO_ARMOR: ModifierBundle(negate_chance=0.08),
    EffectId.OVERCLOCK: ModifierBundle(),
    EffectId.LOGIC_BOMB: ModifierBundle(mitigate_chance=0.12),
    EffectId.GUARDIAN: ModifierBundle(flat_reduction=2),
}


def effect_counts(modules: Iterable[Module]) -> Counter:
    return Counter(m.effect_id for m in modules)


def count_owned(player: PlayerStats, module_id: str) -> int:
    return sum(1 for m in player.modules if m.id == module_id)


def aggregate_modifiers(modules: Iterable[Module]) -> ModifierBundle:
    agg = ModifierBundle()
    for effect, count in effect_counts(modules).items():
        agg = agg.combine(EFFECT_BUNDLES[effect].scaled(count))
    logger.debug("Computed modifier bundle: %s", agg)
    return agg


def get_module(module_id: str) -> Module:
    try:
        return MODULES[module_id]
    except KeyError as exc:
        raise UnknownOptionError(f"Unknown module: {module_id}") from exc


def modules_for_shop(shop_type: Optional[ShopType]) -> Tuple[Module, ...]:
    """Catalog slice offered by a merchant sub-type."""
    if shop_type is ShopType.HARDWARE:
        return tuple(m for m in MODULES.values() if m.effect_id in DEFENSIVE_EFFECTS)
    if shop_type is ShopType.SOFTWARE:
        return tuple(m for m in MODULES.values() if m.effect_id in OFFENSIVE_EFFECTS)
    return tuple(MODULES.values())


def module_cost(module: Module, owned_count: int, alert: int, balance: Optional[BalanceConfig] = None) -> int:
    """Price of the next copy: compounding per owned copy, inflated during lockdown."""
    balance = balance or get_balance()
    growth = balance.economy.module_cost_growth ** owned_count
    return math.ceil(module.cost * growth * price_multiplier(alert, balance))


def acquire_module(player: PlayerStats, module: Module, balance: Optional[BalanceConfig] = None) -> PlayerStats:
    """Add one copy of ``module`` without charging for it.

    Raises StackLimitError once the player already owns the cap.
    """
    balance = balance or get_balance()
    owned = count_owned(player, module.id)
    if owned >= balance.economy.module_stack_cap:
        raise StackLimitError(f"{module.name} is already at {owned} copies")
    player = replace(player, modules=player.modules + (module,))
    if module.effect_id is EffectId.OVERCLOCK:
        max_hp = max(1, player.max_hp - OVERCLOCK_MAX_HP)
        player = replace(
            player,
            power=player.power + OVERCLOCK_POWER,
            max_hp=max_hp,
            hp=min(player.hp, max_hp),
        )
    logger.info("Module acquired: %s (copies=%d)", module.name, owned + 1)
    return player


def purchase_module(
    player: PlayerStats, module: Module, balance: Optional[BalanceConfig] = None
) -> Tuple[PlayerStats, int]:
    """Buy one copy at the current price. Returns the new player and the price paid."""
    balance = balance or get_balance()
    owned = count_owned(player, module.id)
    if owned >= balance.economy.module_stack_cap:
        raise StackLimitError(f"{module.name} is already at {owned} copies")
    cost = module_cost(module, owned, player.security_alert, balance)
    if player.credits < cost:
        raise InsufficientCreditsError(f"Need {cost} Crypto for {module.name}, have {player.credits}")
    player = acquire_module(replace(player, credits=player.credits - cost), module, balance)
    return player, cost


def grant_random_module(
    player: PlayerStats,
    rng: RandomSource,
    pool: Optional[Sequence[Module]] = None,
    balance: Optional[BalanceConfig] = None,
) -> Tuple[PlayerStats, Optional[Module]]:
    """Grant one random module from ``pool``.

    The draw happens even when the chosen module is capped; in that case
    nothing is granted and ``None`` is returned in place of the module.
    """
    module = rng.choice(pool or list(MODULES.values()))
    try:
        return acquire_module(player, module, balance), module
    except StackLimitError:
        logger.info("Random module %s skipped: stack cap reached", module.name)
        return player, None


def describe_stack(module: Module, count: int) -> str:
    """Live effect text for ``count`` copies of ``module``."""
    bundle = EFFECT_BUNDLES[module.effect_id].scaled(count)
    effect = module.effect_id
    if effect is EffectId.VAMPIRE:
        return f"Recover {bundle.heal_on_kill} HP on kill."
    if effect is EffectId.THORNS:
        return f"Deal {bundle.power_bonus} DMG to attackers."
    if effect is EffectId.MINER:
        return f"+{round(bundle.credit_bonus * 100)}% Crypto gain."
    if effect is EffectId.NANO_ARMOR:
        return f"{round(bundle.negate_chance * 100)}% chance to negate DMG."
    if effect is EffectId.OVERCLOCK:
        return f"Overclocked: RAM +{OVERCLOCK_POWER * count}, MaxHP -{OVERCLOCK_MAX_HP * count}."
    if effect is EffectId.LOGIC_BOMB:
        return f"{round(bundle.mitigate_chance * 100)}% chance to mitigate DMG."
    if effect is EffectId.GUARDIAN:
        return f"Reduces DMG by {bundle.flat_reduction} flat amount."
    return module.description
