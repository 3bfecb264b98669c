from pydantic import BaseModel
from typing import Any, List, Optional, Union
from uuid import UUID
from datetime import datetime


class CardSchema(BaseModel):
    id: UUID
    game_id: UUID
    idx: int
    value_cents: int
    revealed: bool
    burned: bool

    class Config:
        from_attributes = True


class MoveSchema(BaseModel):
    id: UUID
    game_id: UUID
    actor_user_id: str | None
    action: str
    payload: Optional[Any] = None
    created_at: datetime

    class Config:
        from_attributes = True


class GameSchema(BaseModel):
    id: UUID
    user_id: str
    entry_fee_cents: int
    currency: str
    status: str
    game_mode: str
    player_case: int | None
    banker_offer_cents: int | None
    accepted_deal: bool
    final_won_cents: int | None
    burn_count: int = 0
    payment_tx_hash: str | None = None
    contract_game_id: str | None = None
    contract_tx_hash: str | None = None
    prize_distributed: bool = False
    prize_distributing: bool = False
    prize_tx_hash: str | None = None
    prize_distribution_error: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class GameDetailSchema(GameSchema):
    """Game row with every card and move. Server side only: carries hidden values."""

    cards: List[CardSchema] = []
    moves: List[MoveSchema] = []


# ==== Views returned to clients =============================================


class CardViewSchema(BaseModel):
    idx: int
    revealed: bool
    burned: bool
    value_cents: int | None  # None until revealed


class MoveViewSchema(BaseModel):
    actor_user_id: str | None
    action: str
    payload: Optional[Any] = None
    created_at: datetime


class FullGameSchema(BaseModel):
    id: UUID
    user_id: str
    status: str
    game_mode: str
    entry_fee_cents: int
    currency: str
    created_at: datetime
    player_case: int | None
    banker_offer_cents: int | None
    accepted_deal: bool
    final_won_cents: int | None
    payment_tx_hash: str | None
    prize_distributed: bool
    prize_tx_hash: str | None
    cards: List[CardViewSchema]
    moves: List[MoveViewSchema]


class RevealedCardSchema(BaseModel):
    idx: int
    value_cents: int
    burned: bool


class PublicGameSchema(BaseModel):
    id: UUID
    status: str
    game_mode: str
    entry_fee_cents: int
    currency: str
    created_at: datetime
    player_case: int | None
    banker_offer_cents: int | None
    accepted_deal: bool
    final_won_cents: int | None
    contract_game_id: str | None
    contract_tx_hash: str | None
    revealed_cards: List[RevealedCardSchema]
    unrevealed_count: int


class GameSummarySchema(BaseModel):
    id: UUID
    status: str
    entry_fee_cents: int
    currency: str
    created_at: datetime
    card_count: int


class GameListItemSchema(BaseModel):
    id: UUID
    status: str
    entry_fee_cents: int
    player_case: int | None
    banker_offer_cents: int | None
    accepted_deal: bool
    final_won_cents: int | None
    created_at: datetime
    status_text: str | None = None

    class Config:
        from_attributes = True


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class CaseValueSchema(BaseModel):
    idx: int
    value_cents: int


class BankerOfferSchema(BaseModel):
    amount_cents: int
    amount_display: str


class SwapInfoSchema(BaseModel):
    original_case: CaseValueSchema
    swapped_to: CaseValueSchema


class FailedDistributionSchema(BaseModel):
    id: UUID
    user_id: str
    final_won_cents: int | None
    prize_distribution_error: str | None
    created_at: datetime

    class Config:
        from_attributes = True


# ==== Response envelopes ====================================================


class CreateGameResponse(BaseModel):
    success: bool = True
    game: GameSummarySchema


class PickResponse(BaseModel):
    success: bool = True
    message: str
    player_case: int


class BurnResponse(BaseModel):
    success: bool = True
    message: str
    burned_case: CaseValueSchema
    banker_offer: BankerOfferSchema | None = None
    game_completed: bool = False
    final_won_cents: int | None = None


class AcceptDealResponse(BaseModel):
    success: bool = True
    message: str
    final_won_cents: int
    final_won_display: str
    prize_distributed: bool = False
    prize_tx_hash: str | None = None


class FinalRevealResponse(BaseModel):
    success: bool = True
    message: str
    final_won_cents: int
    final_won_display: str
    final_case: CaseValueSchema
    swap_info: SwapInfoSchema | None = None
    prize_distributed: bool = False
    prize_tx_hash: str | None = None


class GameStateResponse(BaseModel):
    success: bool = True
    game: Union[FullGameSchema, PublicGameSchema]


class GameListResponse(BaseModel):
    success: bool = True
    games: List[GameListItemSchema]
    pagination: PaginationSchema


class FailedDistributionsResponse(BaseModel):
    success: bool = True
    games: List[FailedDistributionSchema]
    count: int


class RetryDistributionResponse(BaseModel):
    success: bool = True
    message: str
    prize_amount: int
    tx_hash: str | None = None


class AdminBalanceResponse(BaseModel):
    success: bool = True
    admin_address: str
    pyusd_balance: str
    balance_formatted: str
