from dealcase.models.schema_models import (
    CardViewSchema,
    FullGameSchema,
    GameDetailSchema,
    GameSchema,
    GameSummarySchema,
    MoveViewSchema,
    PublicGameSchema,
    RevealedCardSchema,
)


class DataConverter:
    """This class is used to convert stored games into what a client may see.

    Hidden card values never leave through here: a card's value is only
    copied once the card is revealed.
    """

    def convert_game_to_full_view(self, game: GameDetailSchema) -> FullGameSchema:
        """Owner's view: every card's state and the whole move history

        Args:
            game (GameDetailSchema): Game with cards and moves

        Returns:
            FullGameSchema: Unrevealed cards carry ``value_cents=None``
        """
        return FullGameSchema(
            id=game.id,
            user_id=game.user_id,
            status=game.status,
            game_mode=game.game_mode,
            entry_fee_cents=game.entry_fee_cents,
            currency=game.currency,
            created_at=game.created_at,
            player_case=game.player_case,
            banker_offer_cents=game.banker_offer_cents,
            accepted_deal=game.accepted_deal,
            final_won_cents=game.final_won_cents,
            payment_tx_hash=game.payment_tx_hash,
            prize_distributed=game.prize_distributed,
            prize_tx_hash=game.prize_tx_hash,
            cards=[
                CardViewSchema(
                    idx=card.idx,
                    revealed=card.revealed,
                    burned=card.burned,
                    value_cents=card.value_cents if card.revealed else None,
                )
                for card in game.cards
            ],
            moves=[
                MoveViewSchema(
                    actor_user_id=move.actor_user_id,
                    action=move.action,
                    payload=move.payload,
                    created_at=move.created_at,
                )
                for move in game.moves
            ],
        )

    def convert_game_to_public_view(self, game: GameDetailSchema) -> PublicGameSchema:
        """View for anyone but the owner: revealed cards and a count of the rest

        Args:
            game (GameDetailSchema): Game with cards

        Returns:
            PublicGameSchema: Nothing about an unrevealed card besides the count
        """
        revealed_cards = [card for card in game.cards if card.revealed]
        return PublicGameSchema(
            id=game.id,
            status=game.status,
            game_mode=game.game_mode,
            entry_fee_cents=game.entry_fee_cents,
            currency=game.currency,
            created_at=game.created_at,
            player_case=game.player_case,
            banker_offer_cents=game.banker_offer_cents,
            accepted_deal=game.accepted_deal,
            final_won_cents=game.final_won_cents,
            contract_game_id=game.contract_game_id,
            contract_tx_hash=game.contract_tx_hash,
            revealed_cards=[
                RevealedCardSchema(idx=card.idx, value_cents=card.value_cents, burned=card.burned)
                for card in revealed_cards
            ],
            unrevealed_count=len(game.cards) - len(revealed_cards),
        )

    def convert_game_to_summary(self, game: GameSchema, card_count: int) -> GameSummarySchema:
        return GameSummarySchema(
            id=game.id,
            status=game.status,
            entry_fee_cents=game.entry_fee_cents,
            currency=game.currency,
            created_at=game.created_at,
            card_count=card_count,
        )
