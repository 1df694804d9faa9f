import re

import pytest

from conftest import ScriptedRandom
from neon_descent.cards import DEEP_REBOOT_NAME, build_card, build_floor_cards, difficulty_scale
from neon_descent.core.random import RandomSource
from neon_descent.models import RoomType, ShopType


def test_forced_types_are_used_verbatim():
    forced = (RoomType.REST, RoomType.BOSS, RoomType.MERCHANT)
    cards = build_floor_cards(3, 10, 0, RandomSource(5), forced_types=forced)
    assert tuple(c.type for c in cards) == forced


def test_forced_types_must_have_three_entries():
    with pytest.raises(ValueError):
        build_floor_cards(3, 10, 0, RandomSource(5), forced_types=(RoomType.REST,))


def test_every_card_has_three_scouted_types_and_an_id():
    cards = build_floor_cards(3, 40, 0, RandomSource(99))
    assert len(cards) == 3
    for i, card in enumerate(cards):
        assert len(card.next_scout_info) == 3
        assert re.match(rf"^f3-c{i}-[a-z0-9]{{6}}$", card.id)
        assert card.difficulty_scale == pytest.approx(1.09)


def test_same_seed_same_cards():
    a = build_floor_cards(7, 25, 0, RandomSource(11))
    b = build_floor_cards(7, 25, 0, RandomSource(11))
    assert a == b


@pytest.mark.parametrize(
    "room_type,penalty",
    [
        (RoomType.ENEMY, -7),
        (RoomType.ELITE, -13),
        (RoomType.BOSS, -30),
        (RoomType.TREASURE, 5),
        (RoomType.EVENT, 0),
    ],
)
def test_alert_penalty_per_type(room_type, penalty):
    card = build_card(room_type, 2, 0, 0, 0, RandomSource(3))
    assert card.alert_penalty == penalty


def test_deep_reboot_variant():
    # name draw, then variant draw 0.1 < 0.3
    card = build_card(RoomType.REST, 1, 0, 0, 0, ScriptedRandom([0.0, 0.1]))
    assert card.name == DEEP_REBOOT_NAME
    assert card.alert_penalty == 15


def test_quiet_rest_variant():
    card = build_card(RoomType.REST, 1, 0, 0, 0, ScriptedRandom([0.0, 0.9]))
    assert card.name == "Safe House"
    assert card.alert_penalty == 0


def test_merchant_gets_shop_subtype():
    card = build_card(RoomType.MERCHANT, 1, 0, 0, 0, ScriptedRandom([0.0, 0.0]))
    assert card.shop_type is ShopType.HARDWARE
    assert card.name == "Hardware Outpost"
    assert card.alert_penalty == 5


def test_difficulty_scale():
    assert difficulty_scale(10) == pytest.approx(1.3)
