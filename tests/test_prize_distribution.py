import asyncio
from decimal import Decimal

import pytest

from conftest import ADMIN, OWNER, STRANGER, BarrierStore, FakePayments, build_orchestrator
from dealcase.errors import (
    CollaboratorError,
    ConcurrencyConflictError,
    InvalidInputError,
    NotOwnerError,
    StatePreconditionError,
)
from dealcase.models.dc_models import CreateGameModel
from dealcase.models.schema_models import RetryDistributionResponse
from dealcase.services.prize_distribution import PrizeDistributionService


async def play_to_deal(orchestrator):
    response = await orchestrator.create_game(OWNER, CreateGameModel(entry_fee_cents=2000))
    game_id = response.game.id
    await orchestrator.pick_case(game_id, OWNER, 0)
    await orchestrator.burn_case(game_id, OWNER, 1)
    await orchestrator.burn_case(game_id, OWNER, 2)
    deal = await orchestrator.accept_deal(game_id, OWNER)
    return game_id, deal


@pytest.mark.asyncio
async def test_accepted_deal_is_paid_out(store):
    payments = FakePayments()
    orchestrator = build_orchestrator(store, payments)

    game_id, deal = await play_to_deal(orchestrator)

    assert deal.prize_distributed is True
    assert deal.prize_tx_hash == "0xprize1"
    assert payments.distribute_calls == [(OWNER.lower(), deal.final_won_cents)]
    game = await store.get_game_by_id(game_id)
    assert game.prize_distributed is True
    assert game.prize_tx_hash == "0xprize1"
    assert game.prize_distribution_error is None


@pytest.mark.asyncio
async def test_failed_payout_does_not_fail_the_game(store):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)

    game_id, deal = await play_to_deal(orchestrator)

    assert deal.success
    assert deal.prize_distributed is False
    game = await store.get_game_by_id(game_id)
    assert game.status == "FINISHED"
    assert game.prize_distributed is False
    assert game.prize_distribution_error == "Insufficient admin wallet balance"

    failed = await orchestrator.failed_distributions(ADMIN)
    assert [item.id for item in failed] == [game_id]


@pytest.mark.asyncio
async def test_retry_pays_failed_distribution_once(store):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)
    game_id, deal = await play_to_deal(orchestrator)

    payments.distribution_ok = True
    response = await orchestrator.retry_distribution(ADMIN.lower(), game_id)

    assert response.prize_amount == deal.final_won_cents
    assert response.tx_hash == "0xprize2"
    assert await orchestrator.failed_distributions(ADMIN) == []
    with pytest.raises(StatePreconditionError, match="already been distributed"):
        await orchestrator.retry_distribution(ADMIN, game_id)


@pytest.mark.asyncio
async def test_retry_still_failing_raises(store):
    orchestrator = build_orchestrator(store, FakePayments(distribution_ok=False))
    game_id, _ = await play_to_deal(orchestrator)

    with pytest.raises(CollaboratorError, match="Failed to distribute prize"):
        await orchestrator.retry_distribution(ADMIN, game_id)


@pytest.mark.asyncio
async def test_retry_requires_completed_game(store):
    orchestrator = build_orchestrator(store, FakePayments())
    response = await orchestrator.create_game(OWNER, CreateGameModel())

    with pytest.raises(StatePreconditionError, match="Game is not completed yet"):
        await orchestrator.retry_distribution(ADMIN, response.game.id)


@pytest.mark.asyncio
async def test_admin_endpoints_need_admin(store):
    orchestrator = build_orchestrator(store, FakePayments())
    game_id, _ = await play_to_deal(orchestrator)

    with pytest.raises(NotOwnerError):
        await orchestrator.failed_distributions(STRANGER)
    with pytest.raises(NotOwnerError):
        await orchestrator.retry_distribution(OWNER, game_id)


@pytest.mark.asyncio
async def test_scheduled_sweep_retries_every_failure(store):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)
    await play_to_deal(orchestrator)
    await play_to_deal(orchestrator)

    assert await orchestrator.prizes.retry_failed_distributions() == 0

    payments.distribution_ok = True
    assert await orchestrator.prizes.retry_failed_distributions() == 2
    assert await orchestrator.prizes.list_failed() == []


@pytest.mark.asyncio
async def test_concurrent_retries_pay_once(store, session_factory):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)
    game_id, deal = await play_to_deal(orchestrator)
    payments.distribution_ok = True

    racing = PrizeDistributionService(BarrierStore(session_factory, parties=2), payments)
    results = await asyncio.gather(racing.retry(game_id), racing.retry(game_id), return_exceptions=True)

    assert sum(isinstance(result, ConcurrencyConflictError) for result in results) == 1
    assert sum(isinstance(result, RetryDistributionResponse) for result in results) == 1
    # one failed transfer at deal time, one successful retry
    assert payments.distribute_calls == [(OWNER.lower(), deal.final_won_cents)] * 2
    game = await store.get_game_by_id(game_id)
    assert game.prize_distributed is True
    assert game.prize_distributing is False


@pytest.mark.asyncio
async def test_payout_in_flight_is_not_started_again(store):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)
    game_id, _ = await play_to_deal(orchestrator)
    payments.distribution_ok = True

    assert await store.claim_prize_distribution(game_id) is True
    assert await store.claim_prize_distribution(game_id) is False

    with pytest.raises(ConcurrencyConflictError, match="already in progress"):
        await orchestrator.retry_distribution(ADMIN, game_id)
    assert await orchestrator.prizes.list_failed() == []
    assert len(payments.distribute_calls) == 1


@pytest.mark.asyncio
async def test_owner_distributes_prize(store):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)
    game_id, deal = await play_to_deal(orchestrator)
    payments.distribution_ok = True

    response = await orchestrator.distribute_prize(game_id, OWNER, deal.final_won_cents)

    assert response.prize_amount == deal.final_won_cents
    assert response.tx_hash == "0xprize2"
    with pytest.raises(StatePreconditionError, match="already been distributed"):
        await orchestrator.distribute_prize(game_id, OWNER, deal.final_won_cents)


@pytest.mark.asyncio
async def test_owner_distribution_checks_amount_and_owner(store):
    payments = FakePayments(distribution_ok=False)
    orchestrator = build_orchestrator(store, payments)
    game_id, deal = await play_to_deal(orchestrator)
    payments.distribution_ok = True

    with pytest.raises(InvalidInputError, match="Prize amount mismatch"):
        await orchestrator.distribute_prize(game_id, OWNER, deal.final_won_cents + 1)
    with pytest.raises(InvalidInputError, match="Invalid prize amount"):
        await orchestrator.distribute_prize(game_id, OWNER, -1)
    with pytest.raises(NotOwnerError):
        await orchestrator.distribute_prize(game_id, STRANGER, deal.final_won_cents)
    assert len(payments.distribute_calls) == 1


@pytest.mark.asyncio
async def test_admin_balance(store):
    payments = FakePayments()
    orchestrator = build_orchestrator(store, payments)

    response = await orchestrator.admin_balance(ADMIN.lower())

    assert response.admin_address == ADMIN
    assert Decimal(response.pyusd_balance) == Decimal("12.5")
    assert response.balance_formatted == "12.50 PYUSD"
    with pytest.raises(NotOwnerError):
        await orchestrator.admin_balance(OWNER)
    with pytest.raises(CollaboratorError, match="Payment client is not configured"):
        await build_orchestrator(store).admin_balance(ADMIN)
