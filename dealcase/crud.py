from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.orm import selectinload
from typing import Any, Dict, List
from uuid import UUID
import logging

from dealcase.models.schema_models import (
    FailedDistributionSchema,
    GameDetailSchema,
    GameListItemSchema,
    GameSchema,
)
from dealcase.models.schemas import Card, Game, Move


def where_clauses(model, predicate: Dict[str, Any]) -> list:
    """Turn ``{"column": expected}`` into SQL criteria.

    A list or tuple becomes ``IN``, ``None`` becomes ``IS NULL``.
    """
    clauses = []
    for column_name, expected in predicate.items():
        column = getattr(model, column_name)
        if expected is None:
            clauses.append(column.is_(None))
        elif isinstance(expected, (list, tuple)):
            clauses.append(column.in_(expected))
        else:
            clauses.append(column == expected)
    return clauses


class CreateData:
    @staticmethod
    async def create_game_data(game_fields: Dict[str, Any], session: AsyncSession) -> GameSchema | None:
        """Create a game row

        Args:
            game_fields (Dict[str, Any]): Column values for the new game
            session (AsyncSession): AsyncSession object to interact with database

        Returns:
            GameSchema | None: The stored game, None if the insert failed
        """
        try:
            new_game = Game(**game_fields)
            session.add(new_game)
            await session.commit()
            await session.refresh(new_game)
            return GameSchema.model_validate(new_game)
        except Exception as e:
            logging.error(f"Failed to create game data: {e}")
            await session.rollback()
            return None

    @staticmethod
    async def create_card_data(game_id: UUID, values: List[int], session: AsyncSession) -> bool:
        """Create one card per value, card index is the list position

        Args:
            game_id (UUID): Owning game
            values (List[int]): Hidden values in cents
        """
        try:
            session.add_all(
                [
                    Card(game_id=game_id, idx=idx, value_cents=value)
                    for idx, value in enumerate(values)
                ]
            )
            await session.commit()
            return True
        except Exception as e:
            logging.error(f"Failed to create card data: {e}")
            await session.rollback()
            return False

    @staticmethod
    async def create_move_data(
        game_id: UUID,
        actor_user_id: str | None,
        action: str,
        payload: Dict[str, Any] | None,
        session: AsyncSession,
    ) -> bool:
        """Append one move to the audit log

        Args:
            game_id (UUID): Game the move belongs to
            actor_user_id (str | None): Acting wallet, None for the banker
            action (str): Move tag
            payload (Dict[str, Any] | None): Free-form move details
        """
        try:
            session.add(
                Move(
                    game_id=game_id,
                    actor_user_id=actor_user_id,
                    action=action,
                    payload=payload,
                )
            )
            await session.commit()
            return True
        except Exception as e:
            logging.error(f"Failed to create move data: {e}")
            await session.rollback()
            return False


class ReadData:
    @staticmethod
    async def read_game_data(game_id: UUID, session: AsyncSession) -> GameDetailSchema | None:
        """Read game data with its cards and moves

        Args:
            game_id (UUID): To identify the game

        Returns:
            GameDetailSchema | None: Game data with cards ordered by index and moves by time
        """
        try:
            stmt = (
                select(Game)
                .where(Game.id == game_id)
                .options(selectinload(Game.cards), selectinload(Game.moves))
            )
            result = await session.execute(stmt)
            result = result.scalars().first()

            if result is None:
                return None

            return GameDetailSchema.model_validate(result)
        except Exception as e:
            logging.error(f"Failed to read game data: {e}")
            raise

    @staticmethod
    async def read_games_by_user(
        user_id: str, offset: int, limit: int, session: AsyncSession
    ) -> List[GameListItemSchema]:
        """Read one page of a user's games, newest first"""
        try:
            stmt = (
                select(Game)
                .where(Game.user_id == user_id)
                .order_by(desc(Game.created_at), desc(Game.id))
                .offset(offset)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [GameListItemSchema.model_validate(game) for game in result.scalars().all()]
        except Exception as e:
            logging.error(f"Failed to read games of {user_id}: {e}")
            raise

    @staticmethod
    async def count_games_by_user(user_id: str, session: AsyncSession) -> int:
        try:
            stmt = select(func.count()).select_from(Game).where(Game.user_id == user_id)
            result = await session.execute(stmt)
            return result.scalar_one()
        except Exception as e:
            logging.error(f"Failed to count games of {user_id}: {e}")
            raise

    @staticmethod
    async def read_failed_distributions(
        terminal_statuses: tuple, session: AsyncSession
    ) -> List[FailedDistributionSchema]:
        """Read finished games whose prize transfer failed"""
        try:
            stmt = (
                select(Game)
                .where(
                    Game.status.in_(terminal_statuses),
                    Game.prize_distributed.is_(False),
                    Game.prize_distributing.is_(False),
                    Game.prize_distribution_error.is_not(None),
                )
                .order_by(desc(Game.created_at))
            )
            result = await session.execute(stmt)
            return [
                FailedDistributionSchema.model_validate(game)
                for game in result.scalars().all()
            ]
        except Exception as e:
            logging.error(f"Failed to read failed distributions: {e}")
            raise


class UpdateData:
    @staticmethod
    async def update_game_where(
        game_id: UUID,
        values: Dict[str, Any],
        predicate: Dict[str, Any],
        session: AsyncSession,
        commit: bool = True,
    ) -> int:
        """Update a game only if ``predicate`` still holds

        Args:
            game_id (UUID): To identify the game
            values (Dict[str, Any]): Columns to set
            predicate (Dict[str, Any]): Expected current column values
            commit (bool, optional): False when the caller owns the transaction. Defaults to True.

        Returns:
            int: Number of rows updated, 0 when the predicate no longer holds
        """
        try:
            stmt = (
                update(Game)
                .where(Game.id == game_id, *where_clauses(Game, predicate))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            if commit:
                await session.commit()
            return result.rowcount
        except Exception as e:
            logging.error(f"Failed to update game {game_id}: {e}")
            raise

    @staticmethod
    async def update_card_where(
        card_id: UUID,
        values: Dict[str, Any],
        predicate: Dict[str, Any],
        session: AsyncSession,
        commit: bool = True,
    ) -> int:
        """Update a card only if ``predicate`` still holds

        Returns:
            int: Number of rows updated
        """
        try:
            stmt = (
                update(Card)
                .where(Card.id == card_id, *where_clauses(Card, predicate))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            if commit:
                await session.commit()
            return result.rowcount
        except Exception as e:
            logging.error(f"Failed to update card {card_id}: {e}")
            raise


class DeleteData:
    @staticmethod
    async def delete_game_data(game_id: UUID, session: AsyncSession) -> None:
        """Delete a game with its cards and moves"""
        try:
            await session.execute(delete(Move).where(Move.game_id == game_id))
            await session.execute(delete(Card).where(Card.game_id == game_id))
            await session.execute(delete(Game).where(Game.id == game_id))
            await session.commit()
        except Exception as e:
            logging.error(f"Failed to delete game {game_id}: {e}")
            raise
