from pydantic import BaseModel, Field, StrictBool, StrictInt
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID


class GameStatus(str, Enum):
    CREATED = "CREATED"  # not used by the standard flow
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"  # administrative only
    CONTRACT_ACTIVE = "CONTRACT_ACTIVE"
    CONTRACT_COMPLETED = "CONTRACT_COMPLETED"


class GameMode(str, Enum):
    standard = "standard"
    contract = "contract"


class GameOperation(str, Enum):
    pick = "pick"
    burn = "burn"
    accept_deal = "acceptDeal"
    final_reveal = "finalReveal"


class MoveAction(str, Enum):
    GAME_CREATED = "GAME_CREATED"
    PICK = "PICK"
    BURN = "BURN"
    BANKER_OFFER = "BANKER_OFFER"
    ACCEPT_DEAL = "ACCEPT_DEAL"
    FINAL_REVEAL = "FINAL_REVEAL"


class CreateGameModel(BaseModel):
    entry_fee_cents: StrictInt = 2000
    payment_tx_hash: Optional[str] = None


class PickCaseModel(BaseModel):
    operation: Literal["pick"] = "pick"
    idx: StrictInt


class BurnCaseModel(BaseModel):
    operation: Literal["burn"] = "burn"
    idx: StrictInt


class AcceptDealModel(BaseModel):
    operation: Literal["acceptDeal"] = "acceptDeal"


class FinalRevealModel(BaseModel):
    operation: Literal["finalReveal"] = "finalReveal"
    swap: StrictBool = False


GameActionModel = Annotated[
    Union[PickCaseModel, BurnCaseModel, AcceptDealModel, FinalRevealModel],
    Field(discriminator="operation"),
]


class RetryDistributionModel(BaseModel):
    game_id: UUID


class DistributePrizeModel(BaseModel):
    prize_amount_cents: StrictInt
