"""Game lifecycle: one player action per call.

Every state transition is a conditional UPDATE whose WHERE clause repeats the
precondition that was validated; zero affected rows means a concurrent
request already moved the game on and surfaces as ConcurrencyConflictError.
"""

import logging
import math
import random
from typing import List
from uuid import UUID

from dealcase.converter import DataConverter
from dealcase.domain.game_rules import (
    ACTIVE_STATUSES,
    MAX_ENTRY_FEE_CENTS,
    MIN_ENTRY_FEE_CENTS,
    STANDARD_RULES,
    ModeRules,
    calculate_banker_offer,
    format_currency,
    game_status_text,
    generate_card_values,
    get_remaining_values,
    rules_for_mode,
    should_banker_offer,
    validate_game_state,
)
from dealcase.errors import (
    CollaboratorError,
    ConcurrencyConflictError,
    GameNotFoundError,
    InvalidInputError,
    NotOwnerError,
    StatePreconditionError,
)
from dealcase.models.dc_models import (
    AcceptDealModel,
    BurnCaseModel,
    CreateGameModel,
    FinalRevealModel,
    GameActionModel,
    GameOperation,
    MoveAction,
    PickCaseModel,
)
from dealcase.models.schema_models import (
    AcceptDealResponse,
    AdminBalanceResponse,
    BankerOfferSchema,
    BurnResponse,
    CardSchema,
    CaseValueSchema,
    CreateGameResponse,
    FinalRevealResponse,
    GameDetailSchema,
    GameListResponse,
    GameStateResponse,
    PaginationSchema,
    PickResponse,
    SwapInfoSchema,
)
from dealcase.services.game_db import GameStore
from dealcase.services.prize_distribution import PrizeDistributionService
from dealcase.services.pyusd import PyusdClient, units_to_pyusd


class GameOrchestrator:
    def __init__(
        self,
        store: GameStore,
        prizes: PrizeDistributionService,
        payments: PyusdClient | None = None,
        admin_address: str | None = None,
        require_payment: bool = False,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.prizes = prizes
        self.payments = payments
        self.admin_address = admin_address
        self.require_payment = require_payment
        self.rng = rng
        self.converter = DataConverter()

    # ==== helpers =============================================================

    def _random_kwargs(self) -> dict:
        return {"rng": self.rng} if self.rng is not None else {}

    async def _load_owned_game(
        self, game_id: UUID, principal_id: str, operation: GameOperation
    ) -> GameDetailSchema:
        """Load the game, check ownership and the state guard for ``operation``"""
        game = await self.store.get_game_by_id(game_id)
        if game is None:
            raise GameNotFoundError("Game not found")
        if game.user_id != principal_id.lower():
            raise NotOwnerError("Unauthorized - not game owner")

        check = validate_game_state(game, operation)
        if not check.valid:
            raise StatePreconditionError(check.error)
        return game

    @staticmethod
    def _find_card(game: GameDetailSchema, idx: int, rules: ModeRules) -> CardSchema:
        if idx < 0 or idx >= rules.card_count:
            raise InvalidInputError(
                f"Invalid case index. Must be between 0 and {rules.card_count - 1}."
            )
        card = next((card for card in game.cards if card.idx == idx), None)
        if card is None:
            raise InvalidInputError("Case not found")
        return card

    # ==== operations ==========================================================

    async def create_game(self, principal_id: str, request: CreateGameModel) -> CreateGameResponse:
        """Seal a new standard-mode game for ``principal_id``

        Args:
            principal_id (str): Authenticated wallet, becomes the owner
            request (CreateGameModel): Entry fee and the payment transaction

        Raises:
            InvalidInputError: Fee out of range, or missing / unverifiable payment
            CollaboratorError: The game or its cards could not be stored

        Returns:
            CreateGameResponse: Summary without any card value
        """
        entry_fee_cents = request.entry_fee_cents
        if entry_fee_cents < MIN_ENTRY_FEE_CENTS or entry_fee_cents > MAX_ENTRY_FEE_CENTS:
            raise InvalidInputError(
                f"Invalid entry fee. Must be between {MIN_ENTRY_FEE_CENTS} and {MAX_ENTRY_FEE_CENTS} cents."
            )

        user_id = principal_id.lower()
        if self.require_payment:
            if not request.payment_tx_hash:
                raise InvalidInputError("Payment transaction hash is required")
            if self.payments is None:
                raise CollaboratorError("Payment client is not configured")
            is_payment_valid = await self.payments.verify_transfer(
                request.payment_tx_hash, user_id, self.admin_address, entry_fee_cents
            )
            if not is_payment_valid:
                raise InvalidInputError("Invalid or insufficient PYUSD payment")

        card_values = generate_card_values(entry_fee_cents, **self._random_kwargs())

        game = await self.store.insert_game(
            {
                "user_id": user_id,
                "entry_fee_cents": entry_fee_cents,
                "currency": "PYUSD",
                "status": STANDARD_RULES.active_status.value,
                "game_mode": STANDARD_RULES.mode.value,
                "payment_tx_hash": request.payment_tx_hash,
            }
        )
        try:
            await self.store.insert_cards(game.id, card_values)
        except CollaboratorError:
            # Compensate: the game must not exist without its cards.
            try:
                await self.store.delete_game(game.id)
            except Exception as e:
                logging.error(f"Failed to clean up game {game.id} after card failure: {e}")
            raise

        await self.store.insert_move(
            game.id,
            user_id,
            MoveAction.GAME_CREATED.value,
            {
                "entry_fee_cents": entry_fee_cents,
                "card_count": len(card_values),
                "payment_tx_hash": request.payment_tx_hash,
                "currency": "PYUSD",
            },
        )
        logging.info(f"Game {game.id} created for {user_id} with entry fee {entry_fee_cents}")
        return CreateGameResponse(
            game=self.converter.convert_game_to_summary(game, len(card_values))
        )

    async def apply(self, game_id: UUID, principal_id: str, action: GameActionModel):
        """Dispatch one player action to its operation"""
        if isinstance(action, PickCaseModel):
            return await self.pick_case(game_id, principal_id, action.idx)
        if isinstance(action, BurnCaseModel):
            return await self.burn_case(game_id, principal_id, action.idx)
        if isinstance(action, AcceptDealModel):
            return await self.accept_deal(game_id, principal_id)
        if isinstance(action, FinalRevealModel):
            return await self.final_reveal(game_id, principal_id, action.swap)
        raise InvalidInputError(f"Unknown operation {action!r}")

    async def pick_case(self, game_id: UUID, principal_id: str, idx: int) -> PickResponse:
        game = await self._load_owned_game(game_id, principal_id, GameOperation.pick)
        rules = rules_for_mode(game.game_mode)
        self._find_card(game, idx, rules)

        rows = await self.store.conditional_update_game(
            game.id, {"player_case": idx}, {"status": ACTIVE_STATUSES, "player_case": None}
        )
        if rows == 0:
            raise ConcurrencyConflictError("Player has already picked a case")

        await self.store.insert_move(game.id, game.user_id, MoveAction.PICK.value, {"case_idx": idx})
        logging.info(f"Game {game.id}: case {idx} picked")
        return PickResponse(message=f"Case {idx + 1} selected!", player_case=idx)

    async def burn_case(self, game_id: UUID, principal_id: str, idx: int) -> BurnResponse:
        """Reveal one of the other cases; the banker may answer with an offer

        The last possible burn (only the player's case left) finishes the game
        with the player's case.
        """
        game = await self._load_owned_game(game_id, principal_id, GameOperation.burn)
        rules = rules_for_mode(game.game_mode)
        card = self._find_card(game, idx, rules)

        if idx == game.player_case:
            raise InvalidInputError("Cannot burn your chosen case")
        if card.revealed:
            raise StatePreconditionError("Case already revealed")

        # Commits only if no other burn landed since ``game`` was read, so the
        # snapshot below is the state right after this burn.
        await self.store.burn_card(
            card.id,
            game.id,
            game.burn_count,
            {"status": ACTIVE_STATUSES, "accepted_deal": False},
        )

        await self.store.insert_move(
            game.id,
            game.user_id,
            MoveAction.BURN.value,
            {"case_idx": idx, "value_cents": card.value_cents},
        )

        burned_count = game.burn_count + 1
        cards_after = [
            other.model_copy(update={"revealed": True, "burned": True}) if other.idx == idx else other
            for other in game.cards
        ]
        unrevealed = [other for other in cards_after if not other.revealed]
        logging.info(f"Game {game.id}: case {idx} burned, {burned_count} burned so far")

        if len(unrevealed) == 1 and unrevealed[0].idx == game.player_case:
            player_card = unrevealed[0]
            await self.store.reveal_final_card(
                player_card.id,
                game.id,
                {"final_won_cents": player_card.value_cents, "status": rules.terminal_status.value},
                {"status": ACTIVE_STATUSES, "accepted_deal": False, "burn_count": burned_count},
            )
            await self.store.insert_move(
                game.id,
                game.user_id,
                MoveAction.FINAL_REVEAL.value,
                {
                    "final_case_idx": player_card.idx,
                    "final_value_cents": player_card.value_cents,
                    "swapped": False,
                    "player_case_value": player_card.value_cents,
                    "auto_completed": True,
                },
            )
            await self.prizes.distribute(game.id, game.user_id, player_card.value_cents)
            return BurnResponse(
                message=f"Case {idx + 1} burned! Game complete - you won {format_currency(player_card.value_cents)}!",
                burned_case=CaseValueSchema(idx=idx, value_cents=card.value_cents),
                game_completed=True,
                final_won_cents=player_card.value_cents,
            )

        banker_offer = None
        if should_banker_offer(burned_count):
            remaining_values = get_remaining_values(cards_after, game.player_case)
            offer = calculate_banker_offer(remaining_values, **self._random_kwargs())

            # Offer only for the state it was computed from
            rows = await self.store.conditional_update_game(
                game.id,
                {"banker_offer_cents": offer},
                {"status": ACTIVE_STATUSES, "accepted_deal": False, "burn_count": burned_count},
            )
            if rows == 0:
                logging.warning(f"Game {game.id}: offer after burn {burned_count} dropped, game moved on")
            else:
                await self.store.insert_move(
                    game.id,
                    None,
                    MoveAction.BANKER_OFFER.value,
                    {"offer_cents": offer, "burned_count": burned_count},
                )
                logging.info(f"Game {game.id}: banker offers {offer}")
                banker_offer = BankerOfferSchema(amount_cents=offer, amount_display=format_currency(offer))

        return BurnResponse(
            message=f"Case {idx + 1} burned! Value: {format_currency(card.value_cents)}",
            burned_case=CaseValueSchema(idx=idx, value_cents=card.value_cents),
            banker_offer=banker_offer,
        )

    async def accept_deal(self, game_id: UUID, principal_id: str) -> AcceptDealResponse:
        game = await self._load_owned_game(game_id, principal_id, GameOperation.accept_deal)
        rules = rules_for_mode(game.game_mode)
        offer = game.banker_offer_cents

        rows = await self.store.conditional_update_game(
            game.id,
            {"accepted_deal": True, "final_won_cents": offer, "status": rules.terminal_status.value},
            {"status": ACTIVE_STATUSES, "accepted_deal": False, "banker_offer_cents": offer},
        )
        if rows == 0:
            raise ConcurrencyConflictError("Deal is no longer available")

        await self.store.insert_move(
            game.id, game.user_id, MoveAction.ACCEPT_DEAL.value, {"offer_cents": offer}
        )
        logging.info(f"Game {game.id}: deal accepted at {offer}")

        distribution = await self.prizes.distribute(game.id, game.user_id, offer)
        return AcceptDealResponse(
            message="Deal accepted!",
            final_won_cents=offer,
            final_won_display=format_currency(offer),
            prize_distributed=bool(distribution and distribution.success),
            prize_tx_hash=distribution.tx_hash if distribution else None,
        )

    async def final_reveal(self, game_id: UUID, principal_id: str, swap: bool = False) -> FinalRevealResponse:
        """Open the player's case, or the last other case when ``swap`` is set

        Raises:
            StatePreconditionError: Not exactly two cases left unrevealed
            ConcurrencyConflictError: The game finished or the case opened meanwhile
        """
        game = await self._load_owned_game(game_id, principal_id, GameOperation.final_reveal)
        rules = rules_for_mode(game.game_mode)

        unrevealed = [card for card in game.cards if not card.revealed]
        if len(unrevealed) != 2:
            raise StatePreconditionError("Final reveal can only happen when exactly 2 cases remain")

        player_card = next((card for card in unrevealed if card.idx == game.player_case), None)
        other_card = next((card for card in unrevealed if card.idx != game.player_case), None)
        if player_card is None or other_card is None:
            raise StatePreconditionError("Invalid game state for final reveal")

        final_card = other_card if swap else player_card
        await self.store.reveal_final_card(
            final_card.id,
            game.id,
            {"final_won_cents": final_card.value_cents, "status": rules.terminal_status.value},
            {"status": ACTIVE_STATUSES, "accepted_deal": False, "burn_count": game.burn_count},
        )
        await self.store.insert_move(
            game.id,
            game.user_id,
            MoveAction.FINAL_REVEAL.value,
            {
                "final_case_idx": final_card.idx,
                "final_value_cents": final_card.value_cents,
                "swapped": swap,
                "player_case_value": player_card.value_cents,
                "other_case_value": other_card.value_cents,
            },
        )
        logging.info(f"Game {game.id}: final reveal of case {final_card.idx}, swapped={swap}")

        distribution = await self.prizes.distribute(game.id, game.user_id, final_card.value_cents)
        swap_info = None
        if swap:
            swap_info = SwapInfoSchema(
                original_case=CaseValueSchema(idx=player_card.idx, value_cents=player_card.value_cents),
                swapped_to=CaseValueSchema(idx=other_card.idx, value_cents=other_card.value_cents),
            )
        return FinalRevealResponse(
            message="Case swapped and revealed!" if swap else "Final case revealed!",
            final_won_cents=final_card.value_cents,
            final_won_display=format_currency(final_card.value_cents),
            final_case=CaseValueSchema(idx=final_card.idx, value_cents=final_card.value_cents),
            swap_info=swap_info,
            prize_distributed=bool(distribution and distribution.success),
            prize_tx_hash=distribution.tx_hash if distribution else None,
        )

    async def get_game_state(
        self, game_id: UUID, principal_id: str | None = None, public_only: bool = False
    ) -> GameStateResponse:
        """Full view for the owner, public view for everybody else"""
        game = await self.store.get_game_by_id(game_id)
        if game is None:
            raise GameNotFoundError("Game not found")

        is_owner = principal_id is not None and principal_id.lower() == game.user_id
        if is_owner and not public_only:
            return GameStateResponse(game=self.converter.convert_game_to_full_view(game))
        return GameStateResponse(game=self.converter.convert_game_to_public_view(game))

    async def list_games(self, principal_id: str, page: int = 1, limit: int = 10) -> GameListResponse:
        if page < 1 or limit < 1 or limit > 100:
            raise InvalidInputError("page must be >= 1 and limit between 1 and 100")

        user_id = principal_id.lower()
        games = await self.store.list_games_for_user(user_id, (page - 1) * limit, limit)
        total = await self.store.count_games_for_user(user_id)
        total_pages = math.ceil(total / limit)
        return GameListResponse(
            games=[game.model_copy(update={"status_text": game_status_text(game.status)}) for game in games],
            pagination=PaginationSchema(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )

    def is_admin(self, principal_id: str) -> bool:
        return self.admin_address is not None and principal_id.lower() == self.admin_address.lower()

    def require_admin(self, principal_id: str) -> None:
        if not self.is_admin(principal_id):
            raise NotOwnerError("Access denied - admin privileges required")

    async def failed_distributions(self, principal_id: str) -> List:
        self.require_admin(principal_id)
        return await self.prizes.list_failed()

    async def retry_distribution(self, principal_id: str, game_id: UUID):
        self.require_admin(principal_id)
        return await self.prizes.retry(game_id)

    async def distribute_prize(self, game_id: UUID, principal_id: str, prize_amount_cents: int):
        """Owner asks for the payout of a finished game that was not paid yet"""
        if prize_amount_cents < 0:
            raise InvalidInputError("Invalid prize amount")

        game = await self.store.get_game_by_id(game_id)
        if game is None:
            raise GameNotFoundError("Game not found")
        if game.user_id != principal_id.lower():
            raise NotOwnerError("Unauthorized - not game owner")
        return await self.prizes.retry(game_id, expected_cents=prize_amount_cents)

    async def admin_balance(self, principal_id: str) -> AdminBalanceResponse:
        self.require_admin(principal_id)
        if self.payments is None:
            raise CollaboratorError("Payment client is not configured")

        try:
            balance_units = await self.payments.get_balance(self.admin_address)
        except Exception as e:
            raise CollaboratorError(f"Failed to check admin balance: {e}") from e
        pyusd_balance = units_to_pyusd(balance_units)
        logging.info(f"Admin wallet {self.admin_address} PYUSD balance: {pyusd_balance}")
        return AdminBalanceResponse(
            admin_address=self.admin_address,
            pyusd_balance=str(pyusd_balance),
            balance_formatted=f"{pyusd_balance:.2f} PYUSD",
        )
