from conftest import ScriptedRandom, make_player
from neon_descent.combat import combat_credit_reward, enemy_stats, rounds_to_kill, simulate_combat
from neon_descent.models import RoomType
from neon_descent.upgrades import MODULES, ModifierBundle, aggregate_modifiers


def test_rounds_to_kill_counts_opening_strike():
    # 100 HP left after a 30 opening strike, 30 per round: 1 + ceil(100/30) = 5
    assert rounds_to_kill(130, 30, 30) == 5
    assert rounds_to_kill(100, 30, 30) == 4
    # one-shot
    assert rounds_to_kill(10, 17, 10) == 1


def test_damage_over_rounds_minus_one_without_stealth(balance):
    player = make_player(security_alert=30)
    outcome = simulate_combat(RoomType.ENEMY, 0, player, ModifierBundle(), ScriptedRandom(), balance)
    # enemy: hp 24, power floor(12 * 1.2) = 14; 10 + 10 + 10 kills in 3 rounds
    assert outcome.enemy_hp == 24
    assert outcome.enemy_power == 14
    assert outcome.first_hit == 10
    assert outcome.rounds_to_kill == 3
    assert outcome.damage_taken == 2 * 14


def test_stealth_first_hit(balance):
    outcome = simulate_combat(RoomType.ENEMY, 0, make_player(), ModifierBundle(), ScriptedRandom(), balance)
    assert outcome.first_hit == 17
    assert outcome.rounds_to_kill == 2
    assert outcome.damage_taken == 12


def test_enemy_stats_alert_amplifies_power_only(balance):
    assert enemy_stats(RoomType.ENEMY, 0, 0, balance) == (12, 24)
    assert enemy_stats(RoomType.ENEMY, 0, 75, balance) == (18, 24)


def test_shield_and_guardian_reduce_each_hit(balance):
    player = make_player(security_alert=30, shield=3, modules=(MODULES["m7"],))
    mods = aggregate_modifiers(player.modules)
    outcome = simulate_combat(RoomType.ENEMY, 0, player, mods, ScriptedRandom(), balance)
    assert outcome.damage_per_round == 14 - 3 - 2
    assert outcome.damage_taken == 2 * 9


def test_nano_armor_negates_a_round(balance):
    player = make_player(security_alert=30, modules=(MODULES["m4"],))
    mods = aggregate_modifiers(player.modules)
    outcome = simulate_combat(RoomType.ENEMY, 0, player, mods, ScriptedRandom([0.0, 0.5]), balance)
    assert outcome.negated_rounds == 1
    assert outcome.damage_taken == 14


def test_logic_bomb_mitigates_a_round(balance):
    player = make_player(security_alert=30, modules=(MODULES["m6"],))
    mods = aggregate_modifiers(player.modules)
    outcome = simulate_combat(RoomType.ENEMY, 0, player, mods, ScriptedRandom([0.05, 0.9]), balance)
    assert outcome.mitigated_rounds == 1
    assert outcome.damage_taken == 14


def test_thorns_add_effective_power(balance):
    player = make_player(security_alert=30, modules=(MODULES["m2"],) * 2)
    mods = aggregate_modifiers(player.modules)
    outcome = simulate_combat(RoomType.ENEMY, 0, player, mods, ScriptedRandom(), balance)
    # 16 + 16 kills 24 HP in two rounds
    assert outcome.effective_power == 16
    assert outcome.rounds_to_kill == 2


def test_credit_reward(balance):
    mods = ModifierBundle()
    # variance 0.8 + 0.5 * 0.4 = 1.0
    assert combat_credit_reward(RoomType.ENEMY, 0, 0, mods, ScriptedRandom([0.5]), balance) == 6
    assert combat_credit_reward(RoomType.BOSS, 0, 0, mods, ScriptedRandom([0.5]), balance) == 60
    # active sweep: 6 * 1.3 (reward) * 1.3 (sweep) = 10.14
    assert combat_credit_reward(RoomType.ENEMY, 0, 30, mods, ScriptedRandom([0.5]), balance) == 10


def test_credit_reward_miner_bonus(balance):
    mods = aggregate_modifiers([MODULES["m3"]])
    assert combat_credit_reward(RoomType.ELITE, 0, 0, mods, ScriptedRandom([0.5]), balance) == 21
