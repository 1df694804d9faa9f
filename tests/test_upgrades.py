import pytest

from conftest import ScriptedRandom, make_player
from neon_descent.exceptions import InsufficientCreditsError, StackLimitError, UnknownOptionError
from neon_descent.models import EffectId, Module, ShopType
from neon_descent.upgrades import (
    MODULES,
    aggregate_modifiers,
    describe_stack,
    get_module,
    grant_random_module,
    module_cost,
    modules_for_shop,
    purchase_module,
)


def test_repeat_purchase_cost_in_lockdown(balance):
    module = Module("x", "Test", "", EffectId.GUARDIAN, 100)
    # ceil(100 * 1.12^2 * 1.25) = 157
    assert module_cost(module, 2, 70, balance) == 157
    assert module_cost(module, 0, 0, balance) == 100


def test_aggregate_modifiers_stacks_per_effect():
    mods = aggregate_modifiers([MODULES["m2"], MODULES["m2"], MODULES["m7"], MODULES["m4"], MODULES["m3"]])
    assert mods.power_bonus == 6
    assert mods.flat_reduction == 2
    assert mods.negate_chance == pytest.approx(0.08)
    assert mods.mitigate_chance == 0
    assert mods.credit_multiplier == pytest.approx(1.2)


def test_empty_bundle():
    mods = aggregate_modifiers([])
    assert mods.power_bonus == 0
    assert mods.credit_multiplier == 1.0


def test_purchase_overclock_applies_stat_change_once(balance):
    player = make_player(credits=200)
    player, cost = purchase_module(player, MODULES["m5"], balance)
    assert cost == 90
    assert player.credits == 110
    assert player.power == 13
    assert player.max_hp == 90
    assert player.hp == 90
    # no further change from simply owning it
    assert aggregate_modifiers(player.modules).power_bonus == 0


def test_purchase_blocked_at_stack_cap(balance):
    player = make_player(credits=10_000, modules=(MODULES["m2"],) * 5)
    with pytest.raises(StackLimitError):
        purchase_module(player, MODULES["m2"], balance)


def test_purchase_blocked_without_credits(balance):
    player = make_player(credits=10)
    with pytest.raises(InsufficientCreditsError):
        purchase_module(player, MODULES["m1"], balance)


def test_grant_random_module_skips_capped_module(balance):
    player = make_player(modules=(MODULES["m1"],) * 5)
    after, module = grant_random_module(player, ScriptedRandom([0.0]), pool=[MODULES["m1"]], balance=balance)
    assert module is None
    assert after == player


def test_grant_random_module(balance):
    player, module = grant_random_module(make_player(), ScriptedRandom([0.0]), balance=balance)
    assert module is MODULES["m1"]
    assert player.modules == (MODULES["m1"],)


def test_shop_catalog_slices():
    assert {m.id for m in modules_for_shop(ShopType.HARDWARE)} == {"m4", "m5", "m7"}
    assert {m.id for m in modules_for_shop(ShopType.SOFTWARE)} == {"m1", "m2", "m3", "m6"}
    assert len(modules_for_shop(ShopType.GENERAL)) == 7


def test_get_module_unknown():
    with pytest.raises(UnknownOptionError):
        get_module("nope")


def test_describe_stack_reads_the_bundle():
    assert describe_stack(MODULES["m2"], 2) == "Deal 6 DMG to attackers."
    assert describe_stack(MODULES["m3"], 2) == "+40% Crypto gain."
    assert describe_stack(MODULES["m4"], 3) == "24% chance to negate DMG."
    assert describe_stack(MODULES["m5"], 2) == "Overclocked: RAM +6, MaxHP -20."
