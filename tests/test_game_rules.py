import math
import random
from types import SimpleNamespace

import pytest

from dealcase.domain.game_rules import (
    calculate_banker_offer,
    format_currency,
    game_status_text,
    generate_card_values,
    get_remaining_values,
    is_game_finished,
    round_half_up,
    rules_for_mode,
    should_banker_offer,
    validate_game_state,
)
from dealcase.models.dc_models import GameOperation


class FixedBits:
    """Random source whose getrandbits always returns ``bits``"""

    def __init__(self, bits):
        self.bits = bits

    def getrandbits(self, k):
        return self.bits


@pytest.mark.parametrize(
    "entry_fee_cents",
    [100, 150, 199, 200, 999, 2000, 9999, 10000, 33333, 50000, 100000],
)
def test_card_values_stay_in_range(entry_fee_cents):
    max_value = min(entry_fee_cents * 10, 100000)
    min_value = math.ceil(max(entry_fee_cents * 0.1, 100))

    for seed in range(50):
        values = generate_card_values(entry_fee_cents, rng=random.Random(seed))
        assert len(values) == 5
        assert all(isinstance(value, int) for value in values)
        assert max(values) == max_value
        assert all(min_value <= value <= max_value for value in values)


def test_card_values_always_contain_the_top_prize_once_generated():
    values = generate_card_values(2000, rng=random.Random(7))
    assert 20000 in values


def test_card_values_differ_between_games():
    games = {tuple(generate_card_values(2000)) for _ in range(20)}
    assert len(games) > 1


def test_card_values_are_shuffled():
    positions = {generate_card_values(2000, rng=random.Random(seed)).index(20000) for seed in range(40)}
    assert len(positions) > 1


def test_banker_offer_bounds():
    remaining = [100, 300]
    rng = random.Random(1)
    for _ in range(200):
        offer = calculate_banker_offer(remaining, rng=rng)
        assert 120 <= offer <= 160


def test_banker_offer_factor_extremes():
    assert calculate_banker_offer([1000, 3000], rng=FixedBits(0)) == 1200
    assert calculate_banker_offer([1000, 3000], rng=FixedBits(255)) == 1600


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_banker_offer_without_remaining_values_is_zero():
    assert calculate_banker_offer([]) == 0


def test_remaining_values_skip_revealed_and_player_case():
    cards = [
        SimpleNamespace(idx=0, value_cents=10, revealed=True),
        SimpleNamespace(idx=1, value_cents=20, revealed=False),
        SimpleNamespace(idx=2, value_cents=30, revealed=False),
        SimpleNamespace(idx=3, value_cents=40, revealed=False),
    ]
    assert get_remaining_values(cards, 2) == [20, 40]


@pytest.mark.parametrize(
    "burned_count, expected",
    [(0, False), (1, False), (2, True), (3, True), (4, False)],
)
def test_offer_trigger_policy(burned_count, expected):
    assert should_banker_offer(burned_count) is expected


def game_state(status="PLAYING", player_case=None, banker_offer_cents=None, accepted_deal=False):
    return SimpleNamespace(
        status=status,
        player_case=player_case,
        banker_offer_cents=banker_offer_cents,
        accepted_deal=accepted_deal,
    )


@pytest.mark.parametrize(
    "game, operation, valid, error",
    [
        (game_state(status="FINISHED"), "pick", False, "Game is not in playing state"),
        (game_state(status="CANCELLED"), "burn", False, "Game is not in playing state"),
        (game_state(status="CREATED"), "acceptDeal", False, "Game is not in playing state"),
        (game_state(status="CONTRACT_COMPLETED"), "finalReveal", False, "Game is not in playing state"),
        (game_state(), "pick", True, None),
        (game_state(status="CONTRACT_ACTIVE"), "pick", True, None),
        (game_state(player_case=1), "pick", False, "Player has already picked a case"),
        (game_state(), "burn", False, "Player must pick a case first"),
        (game_state(player_case=0), "burn", True, None),
        (game_state(player_case=0), "acceptDeal", False, "No banker offer available"),
        (
            game_state(player_case=0, banker_offer_cents=500, accepted_deal=True),
            "acceptDeal",
            False,
            "Deal already accepted",
        ),
        (game_state(player_case=0, banker_offer_cents=500), "acceptDeal", True, None),
        (game_state(player_case=0, accepted_deal=True), "finalReveal", False, "Cannot reveal after accepting deal"),
        (game_state(player_case=0), "finalReveal", True, None),
        (game_state(player_case=0), GameOperation.final_reveal, True, None),
    ],
)
def test_validate_game_state(game, operation, valid, error):
    check = validate_game_state(game, operation)
    assert check.valid is valid
    assert check.error == error


def test_validate_game_state_rejects_unknown_operation():
    with pytest.raises(ValueError):
        validate_game_state(game_state(), "shuffle")


def test_mode_rules():
    assert rules_for_mode("standard").card_count == 5
    assert rules_for_mode("contract").card_count == 8
    assert rules_for_mode("contract").terminal_status.value == "CONTRACT_COMPLETED"


def test_display_helpers():
    assert format_currency(1234) == "$12.34"
    assert format_currency(100000) == "$1,000.00"
    assert game_status_text("PLAYING") == "In Progress"
    assert game_status_text("FINISHED") == "Completed"
    assert is_game_finished("CANCELLED")
    assert not is_game_finished("PLAYING")
