"""Game rules that are independent from HTTP, DB and the chain.

This module is organized by *concept* (rules), not by game mode.
Mode-specific numbers live in ``ModeRules`` so the lifecycle stays shared.

Rule of thumb:
- OK: math, validation, value generation, pure transformations.
- Not OK: touching DB sessions, FastAPI, web3, datetime.now(), etc.
"""

import math
import random
import secrets
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from dealcase.models.dc_models import GameMode, GameOperation, GameStatus

MIN_ENTRY_FEE_CENTS = 100
MAX_ENTRY_FEE_CENTS = 100000
DEFAULT_ENTRY_FEE_CENTS = 2000

MAX_PRIZE_CEILING_CENTS = 100000  # $1000
MIN_PRIZE_FLOOR_CENTS = 100  # $1

OFFER_FACTOR_MIN = 0.6
OFFER_FACTOR_MAX = 0.8

ACTIVE_STATUSES = (GameStatus.PLAYING.value, GameStatus.CONTRACT_ACTIVE.value)
TERMINAL_STATUSES = (
    GameStatus.FINISHED.value,
    GameStatus.CONTRACT_COMPLETED.value,
    GameStatus.CANCELLED.value,
)

_secure_random = secrets.SystemRandom()


# ==============================================================================
# ==== Modes ===================================================================
# ==============================================================================


@dataclass(frozen=True)
class ModeRules:
    mode: GameMode
    card_count: int
    active_status: GameStatus
    terminal_status: GameStatus


STANDARD_RULES = ModeRules(
    mode=GameMode.standard,
    card_count=5,
    active_status=GameStatus.PLAYING,
    terminal_status=GameStatus.FINISHED,
)
CONTRACT_RULES = ModeRules(
    mode=GameMode.contract,
    card_count=8,
    active_status=GameStatus.CONTRACT_ACTIVE,
    terminal_status=GameStatus.CONTRACT_COMPLETED,
)


def rules_for_mode(game_mode: str) -> ModeRules:
    """Return the rules for the given mode."""
    if game_mode == GameMode.contract.value:
        return CONTRACT_RULES
    return STANDARD_RULES


def is_game_active(status: str) -> bool:
    return status in ACTIVE_STATUSES


def is_game_finished(status: str) -> bool:
    return status in TERMINAL_STATUSES


# ==============================================================================
# ==== Prize values ============================================================
# ==============================================================================


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _bucket_bounds(low: float, high: float, min_value: float, max_value: int) -> tuple[int, int]:
    # Buckets are clamped into [min_value, max_value]; an empty bucket collapses to its lower bound.
    lower = math.ceil(min(max(low, min_value), max_value))
    upper = math.floor(max(min(high, max_value), min_value))
    if upper < lower:
        upper = lower
    return lower, upper


def generate_card_values(
    entry_fee_cents: int, rng: random.Random = _secure_random
) -> List[int]:
    """Generate the 5 case values for a new game.

    One case always holds the maximum (10x the entry fee, capped at $1000);
    the other four are drawn from buckets anchored to the entry fee, then the
    whole list is shuffled.

    Args:
        entry_fee_cents (int): Entry fee, already validated by the caller.
        rng (random.Random): Random source. Defaults to ``secrets.SystemRandom``.

    Returns:
        List[int]: Values in cents, in card index order.
    """
    max_value = min(entry_fee_cents * 10, MAX_PRIZE_CEILING_CENTS)
    min_value = max(entry_fee_cents * 0.1, MIN_PRIZE_FLOOR_CENTS)

    buckets = [
        (min_value, entry_fee_cents * 0.5),  # low
        (entry_fee_cents * 0.5, entry_fee_cents * 1.5),  # around entry fee
        (entry_fee_cents * 1.5, entry_fee_cents * 3),  # good
        (entry_fee_cents * 3, entry_fee_cents * 6),  # high
    ]

    values = [max_value]
    for low, high in buckets:
        lower, upper = _bucket_bounds(low, high, min_value, max_value)
        values.append(rng.randint(lower, upper))

    # Fisher-Yates
    for i in range(len(values) - 1, 0, -1):
        j = rng.randrange(i + 1)
        values[i], values[j] = values[j], values[i]

    return values


# ==============================================================================
# ==== Banker ==================================================================
# ==============================================================================


def get_remaining_values(cards: Iterable, player_case: int | None) -> List[int]:
    """Values of the unrevealed cards, excluding the player's own case."""
    return [
        card.value_cents
        for card in cards
        if not card.revealed and card.idx != player_case
    ]


def calculate_banker_offer(
    remaining_values: Sequence[int], rng: random.Random = _secure_random
) -> int:
    """Average of the remaining values times a random factor in [0.6, 0.8]."""
    if not remaining_values:
        return 0

    average = sum(remaining_values) / len(remaining_values)
    factor = OFFER_FACTOR_MIN + (rng.getrandbits(8) / 255) * (
        OFFER_FACTOR_MAX - OFFER_FACTOR_MIN
    )
    return round_half_up(average * factor)


def should_banker_offer(burned_count: int) -> bool:
    """Banker offers after the 2nd and the 3rd burn."""
    return burned_count == 2 or burned_count == 3


# ==============================================================================
# ==== State guard =============================================================
# ==============================================================================


@dataclass(frozen=True)
class StateCheck:
    valid: bool
    error: str | None = None


def validate_game_state(game, operation: GameOperation | str) -> StateCheck:
    """Check whether ``operation`` is legal for the game as persisted.

    Card-count preconditions (final reveal needs exactly two unrevealed
    cards) are left to the caller.

    Args:
        game: Anything exposing status, player_case, banker_offer_cents and accepted_deal.
        operation (GameOperation | str): pick, burn, acceptDeal or finalReveal.

    Raises:
        ValueError: Unknown operation name.
    """
    operation = GameOperation(operation)

    if not is_game_active(game.status):
        return StateCheck(False, "Game is not in playing state")

    if operation == GameOperation.pick:
        if game.player_case is not None:
            return StateCheck(False, "Player has already picked a case")
    elif operation == GameOperation.burn:
        if game.player_case is None:
            return StateCheck(False, "Player must pick a case first")
    elif operation == GameOperation.accept_deal:
        if game.banker_offer_cents is None:
            return StateCheck(False, "No banker offer available")
        if game.accepted_deal:
            return StateCheck(False, "Deal already accepted")
    elif operation == GameOperation.final_reveal:
        if game.accepted_deal:
            return StateCheck(False, "Cannot reveal after accepting deal")

    return StateCheck(True)


# ==============================================================================
# ==== Display =================================================================
# ==============================================================================


def format_currency(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def game_status_text(status: str) -> str:
    return {
        GameStatus.CREATED.value: "Ready to Start",
        GameStatus.PLAYING.value: "In Progress",
        GameStatus.FINISHED.value: "Completed",
        GameStatus.CANCELLED.value: "Cancelled",
        GameStatus.CONTRACT_ACTIVE.value: "In Progress",
        GameStatus.CONTRACT_COMPLETED.value: "Completed",
    }.get(status, status)
