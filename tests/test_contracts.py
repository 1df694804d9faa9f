from dataclasses import replace

import pytest

from conftest import ScriptedRandom, make_player
from neon_descent.contracts import (
    TEMPLATES,
    ContractEvent,
    generate_offers,
    make_contract,
    sign_contract,
    update_contracts,
)
from neon_descent.core.random import RandomSource
from neon_descent.exceptions import ContractCapacityError, InsufficientCreditsError
from neon_descent.models import ContractType, LogKind, RoomType


def _contract(kind, floor=1, **overrides):
    contract = make_contract(TEMPLATES[kind], floor, RandomSource(1))
    return replace(contract, **overrides)


def test_offers_cover_each_type_with_floor_scaled_costs(balance):
    offers = generate_offers(1, RandomSource(4), balance)
    assert [o.type for o in offers] == [ContractType.GHOST_RUN, ContractType.WETWORK, ContractType.CHAOS_BET]
    assert [o.cost for o in offers] == [32, 42, 53]
    # wetwork pays a flat amount plus a module; the others scale with depth
    assert [o.payout_credits for o in offers] == [124, 50, 258]
    assert offers[1].payout_module
    assert all(o.id.startswith("k1-") for o in offers)


def test_sign_contract_charges_the_cost(balance):
    offer = _contract(ContractType.GHOST_RUN)
    player = sign_contract(make_player(credits=100), offer, balance)
    assert player.credits == 100 - offer.cost
    assert player.active_contracts == (offer,)


def test_sign_contract_capacity(balance):
    running = (_contract(ContractType.WETWORK), _contract(ContractType.CHAOS_BET))
    player = make_player(credits=1000, active_contracts=running)
    with pytest.raises(ContractCapacityError):
        sign_contract(player, _contract(ContractType.GHOST_RUN), balance)


def test_sign_contract_needs_credits(balance):
    with pytest.raises(InsufficientCreditsError):
        sign_contract(make_player(credits=5), _contract(ContractType.GHOST_RUN), balance)


def test_combat_win_fails_ghost_run(balance):
    player = make_player(active_contracts=(_contract(ContractType.GHOST_RUN),))
    update = update_contracts(player, ContractEvent.COMBAT_WIN, ScriptedRandom(), RoomType.ENEMY, balance)
    assert update.player.active_contracts == ()
    assert update.logs[0][0] == "Contract Failed: Ghost Protocol (combat detected)"


def test_wetwork_pays_on_elite_kill(balance):
    player = make_player(active_contracts=(_contract(ContractType.WETWORK),))
    update = update_contracts(player, ContractEvent.COMBAT_WIN, ScriptedRandom([0.0]), RoomType.ELITE, balance)
    assert update.player.credits == 50
    assert update.player.modules[0].name == "Vampire Kernel"
    assert update.player.active_contracts == ()
    assert update.logs == (("Contract Complete: Wetwork paid 50 Crypto + Vampire Kernel", LogKind.GAIN),)


def test_wetwork_ignores_regular_enemies(balance):
    player = make_player(active_contracts=(_contract(ContractType.WETWORK),))
    update = update_contracts(player, ContractEvent.COMBAT_WIN, ScriptedRandom(), RoomType.ENEMY, balance)
    assert update.player.active_contracts[0].current_value == 0
    # combat does not tick durations
    assert update.player.active_contracts[0].duration_floors == 5


def test_ghost_run_completes_on_floor_advance(balance):
    ghost = _contract(ContractType.GHOST_RUN, current_value=2)
    player = make_player(active_contracts=(ghost,))
    update = update_contracts(player, ContractEvent.FLOOR_ADVANCE, ScriptedRandom())
    assert update.player.credits == 124
    assert update.player.active_contracts == ()
    assert update.logs[0][0] == "Contract Complete: Ghost Protocol paid 124 Crypto"


def test_floor_advance_ticks_durations(balance):
    update = update_contracts(
        make_player(active_contracts=(_contract(ContractType.WETWORK),)),
        ContractEvent.FLOOR_ADVANCE,
        ScriptedRandom(),
        balance=balance,
    )
    assert update.player.active_contracts[0].duration_floors == 4
    assert update.logs == ()


def test_contract_expires_at_zero(balance):
    dying = _contract(ContractType.WETWORK, duration_floors=1)
    update = update_contracts(
        make_player(active_contracts=(dying,)), ContractEvent.FLOOR_ADVANCE, ScriptedRandom(), balance=balance
    )
    assert update.player.active_contracts == ()
    assert update.logs[0][0] == "Contract Expired: Wetwork"


def test_chaos_bet_completes_at_threshold(balance):
    bet = _contract(ContractType.CHAOS_BET)
    advance = ContractEvent.FLOOR_ADVANCE
    low = update_contracts(make_player(security_alert=79, active_contracts=(bet,)), advance, ScriptedRandom())
    assert low.player.credits == 0
    high = update_contracts(make_player(security_alert=80, active_contracts=(bet,)), advance, ScriptedRandom())
    assert high.player.credits == 258
    assert high.player.active_contracts == ()
