import logging
from typing import List
from uuid import UUID

from dealcase.domain.game_rules import is_game_finished
from dealcase.errors import (
    CollaboratorError,
    ConcurrencyConflictError,
    GameError,
    GameNotFoundError,
    InvalidInputError,
    StatePreconditionError,
)
from dealcase.models.dc_models import GameStatus
from dealcase.models.schema_models import FailedDistributionSchema, RetryDistributionResponse
from dealcase.services.game_db import GameStore
from dealcase.services.pyusd import DistributionResult, PyusdClient

COMPLETED_STATUSES = (GameStatus.FINISHED.value, GameStatus.CONTRACT_COMPLETED.value)


class PrizeDistributionService:
    """Pays finished games out of the admin wallet and records the outcome on the game.

    A transfer only starts after ``claim_prize_distribution`` flipped the game's
    in-flight marker, so one prize is never sent twice.
    """

    def __init__(self, store: GameStore, payments: PyusdClient | None = None):
        self.store = store
        self.payments = payments

    async def distribute(self, game_id: UUID, user_id: str, amount_cents: int) -> DistributionResult | None:
        """Transfer the prize and record the result. Never raises for a failed transfer.

        Returns:
            DistributionResult | None: None when there is nothing to pay, no payment
                client, or another caller already claimed the payout
        """
        if self.payments is None or amount_cents <= 0:
            logging.info(f"Game {game_id} completed with no prize transfer ({amount_cents} cents)")
            return None
        return await self._claim_and_transfer(game_id, user_id, amount_cents)

    async def _claim_and_transfer(self, game_id: UUID, user_id: str, amount_cents: int) -> DistributionResult | None:
        if not await self.store.claim_prize_distribution(game_id):
            logging.warning(f"Prize distribution for game {game_id} is already done or in progress")
            return None

        logging.info(f"Distributing {amount_cents} cents to {user_id} for game {game_id}")
        try:
            result = await self.payments.distribute_funds(user_id, amount_cents)
        except Exception as e:
            logging.error(f"Exception during prize distribution for game {game_id}: {e}")
            result = DistributionResult(
                success=False, error=str(e) or "Unknown error during prize distribution"
            )

        if result.success:
            logging.info(f"Prize distribution for game {game_id} succeeded: {result.tx_hash}")
            values = {
                "prize_distributed": True,
                "prize_tx_hash": result.tx_hash,
                "prize_distribution_error": None,
            }
        else:
            logging.error(f"Prize distribution for game {game_id} failed: {result.error}")
            values = {"prize_distribution_error": result.error}

        await self.store.release_prize_distribution(game_id, values)
        return result

    async def retry(self, game_id: UUID, expected_cents: int | None = None) -> RetryDistributionResponse:
        """Pay a finished game whose prize has not been sent yet

        Args:
            game_id (UUID): Finished game
            expected_cents (int | None, optional): Amount the caller expects to receive;
                must equal the game's winnings when given. Defaults to None.

        Raises:
            StatePreconditionError: Game not completed, or prize already paid
            InvalidInputError: ``expected_cents`` does not match the winnings
            ConcurrencyConflictError: Another payout of this game is in flight
            CollaboratorError: No payment client, or the transfer failed
        """
        game = await self.store.get_game_by_id(game_id)
        if game is None:
            raise GameNotFoundError("Game not found")
        if not is_game_finished(game.status) or game.status == GameStatus.CANCELLED.value:
            raise StatePreconditionError("Game is not completed yet")
        if game.prize_distributed:
            raise StatePreconditionError("Prize has already been distributed")

        prize_amount = game.final_won_cents or 0
        if expected_cents is not None and expected_cents != prize_amount:
            raise InvalidInputError(
                f"Prize amount mismatch: expected {prize_amount}, provided {expected_cents}"
            )

        if prize_amount <= 0:
            rows = await self.store.conditional_update_game(
                game.id,
                {"prize_distributed": True, "prize_distribution_error": None},
                {"prize_distributed": False, "prize_distributing": False},
            )
            if rows == 0:
                raise ConcurrencyConflictError("Prize distribution is already in progress")
            return RetryDistributionResponse(message="No prize to distribute", prize_amount=0)

        if self.payments is None:
            raise CollaboratorError("Payment client is not configured")

        result = await self._claim_and_transfer(game.id, game.user_id, prize_amount)
        if result is None:
            raise ConcurrencyConflictError("Prize distribution is already in progress")
        if not result.success:
            raise CollaboratorError(f"Failed to distribute prize: {result.error}")

        return RetryDistributionResponse(
            message="Prize distributed successfully",
            prize_amount=prize_amount,
            tx_hash=result.tx_hash,
        )

    async def list_failed(self) -> List[FailedDistributionSchema]:
        return await self.store.list_undistributed_prizes(COMPLETED_STATUSES)

    async def retry_failed_distributions(self) -> int:
        """Scheduler job: retry every recorded failure once. Returns how many succeeded."""
        failed = await self.list_failed()
        succeeded = 0
        for game in failed:
            try:
                await self.retry(game.id)
                succeeded += 1
            except GameError as e:
                logging.warning(f"Retry of prize distribution for game {game.id} failed: {e.message}")
        logging.info(f"Prize retry job: {succeeded}/{len(failed)} distributions succeeded")
        return succeeded
