"""DB service layer for game-related use cases.

- The orchestrator and routers do not touch DB sessions directly; they call this module.
- This layer owns session/transaction boundaries.
- Use CRUD helpers with ``commit=False`` inside session.begin().
- Driver and SQL failures leave this layer as CollaboratorError.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from dealcase.crud import CreateData, DeleteData, ReadData, UpdateData
from dealcase.errors import CollaboratorError, ConcurrencyConflictError
from dealcase.models.schema_models import (
    FailedDistributionSchema,
    GameDetailSchema,
    GameListItemSchema,
    GameSchema,
)


class GameStore:
    def __init__(self, Session: async_sessionmaker):
        self.Session = Session

    @asynccontextmanager
    async def session(self):
        try:
            async with self.Session() as session:
                yield session
        except SQLAlchemyError as e:
            logging.error(f"Database operation failed: {e}")
            raise CollaboratorError("Database operation failed") from e

    async def insert_game(self, game_fields: Dict[str, Any]) -> GameSchema:
        async with self.session() as session:
            game = await CreateData.create_game_data(game_fields, session)
        if game is None:
            raise CollaboratorError("Failed to create game")
        return game

    async def insert_cards(self, game_id: UUID, values: List[int]) -> None:
        async with self.session() as session:
            success = await CreateData.create_card_data(game_id, values, session)
        if not success:
            raise CollaboratorError("Failed to create game cards")

    async def insert_move(
        self,
        game_id: UUID,
        actor_user_id: str | None,
        action: str,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        async with self.session() as session:
            success = await CreateData.create_move_data(
                game_id, actor_user_id, action, payload, session
            )
        if not success:
            raise CollaboratorError(f"Failed to create move {action}")

    async def get_game_by_id(self, game_id: UUID) -> GameDetailSchema | None:
        async with self.session() as session:
            return await ReadData.read_game_data(game_id, session)

    async def conditional_update_game(
        self, game_id: UUID, values: Dict[str, Any], predicate: Dict[str, Any]
    ) -> int:
        async with self.session() as session:
            return await UpdateData.update_game_where(game_id, values, predicate, session)

    async def _update_card_and_game(
        self,
        card_id: UUID,
        card_values: Dict[str, Any],
        game_id: UUID,
        game_values: Dict[str, Any],
        game_predicate: Dict[str, Any],
        card_conflict: str,
        game_conflict: str,
    ) -> None:
        async with self.session() as session:
            async with session.begin():
                card_rows = await UpdateData.update_card_where(
                    card_id, card_values, {"revealed": False}, session, commit=False
                )
                if card_rows == 0:
                    raise ConcurrencyConflictError(card_conflict)
                game_rows = await UpdateData.update_game_where(
                    game_id, game_values, game_predicate, session, commit=False
                )
                if game_rows == 0:
                    raise ConcurrencyConflictError(game_conflict)

    async def burn_card(
        self, card_id: UUID, game_id: UUID, observed_burn_count: int, game_predicate: Dict[str, Any]
    ) -> None:
        """Burn a card and bump the game's burn counter in one transaction.

        The counter must still equal ``observed_burn_count``, so two burns of
        the same game never both commit from the same snapshot.

        Raises:
            ConcurrencyConflictError: The card was revealed or another burn
                committed first; nothing is persisted in that case.
        """
        await self._update_card_and_game(
            card_id,
            {"revealed": True, "burned": True},
            game_id,
            {"burn_count": observed_burn_count + 1},
            {**game_predicate, "burn_count": observed_burn_count},
            "Case already revealed",
            "Another case was burned at the same time",
        )

    async def reveal_final_card(
        self,
        card_id: UUID,
        game_id: UUID,
        game_values: Dict[str, Any],
        game_predicate: Dict[str, Any],
    ) -> None:
        """Reveal the chosen card and finish the game in one transaction.

        Raises:
            ConcurrencyConflictError: Either conditional write matched zero rows;
                nothing is persisted in that case.
        """
        await self._update_card_and_game(
            card_id,
            {"revealed": True},
            game_id,
            game_values,
            game_predicate,
            "Final case was already revealed",
            "Game is no longer in playing state",
        )

    async def claim_prize_distribution(self, game_id: UUID) -> bool:
        """Mark the payout as in flight. False when it is paid or already claimed."""
        rows = await self.conditional_update_game(
            game_id,
            {"prize_distributing": True},
            {"prize_distributed": False, "prize_distributing": False},
        )
        return rows == 1

    async def release_prize_distribution(self, game_id: UUID, values: Dict[str, Any]) -> None:
        await self.conditional_update_game(
            game_id, {**values, "prize_distributing": False}, {"prize_distributing": True}
        )

    async def delete_game(self, game_id: UUID) -> None:
        async with self.session() as session:
            await DeleteData.delete_game_data(game_id, session)

    async def list_games_for_user(self, user_id: str, offset: int, limit: int) -> List[GameListItemSchema]:
        async with self.session() as session:
            return await ReadData.read_games_by_user(user_id, offset, limit, session)

    async def count_games_for_user(self, user_id: str) -> int:
        async with self.session() as session:
            return await ReadData.count_games_by_user(user_id, session)

    async def list_undistributed_prizes(self, terminal_statuses: tuple) -> List[FailedDistributionSchema]:
        async with self.session() as session:
            return await ReadData.read_failed_distributions(terminal_statuses, session)
