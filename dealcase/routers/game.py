import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from dealcase.authentication.web3auth import optional_principal, require_principal
from dealcase.models.dc_models import (
    AcceptDealModel,
    BurnCaseModel,
    CreateGameModel,
    DistributePrizeModel,
    FinalRevealModel,
    GameActionModel,
    PickCaseModel,
)
from dealcase.models.schema_models import (
    AcceptDealResponse,
    BurnResponse,
    CreateGameResponse,
    FinalRevealResponse,
    GameListResponse,
    GameStateResponse,
    PickResponse,
    RetryDistributionResponse,
)
from dealcase.services.game_orchestrator import GameOrchestrator

game_router = APIRouter(prefix="/api")


def get_orchestrator(request: Request) -> GameOrchestrator:
    return request.app.state.orchestrator


class GameAPI:
    @staticmethod
    @game_router.post("/game/create", response_model=CreateGameResponse)
    async def create_game(
        body: CreateGameModel | None = None,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        logging.info(f"create game request from {principal_id}")
        return await orchestrator.create_game(principal_id, body or CreateGameModel())

    @staticmethod
    @game_router.post("/game/{game_id}/pick", response_model=PickResponse)
    async def pick_case(
        game_id: UUID,
        body: PickCaseModel,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.apply(game_id, principal_id, body)

    @staticmethod
    @game_router.post("/game/{game_id}/burn", response_model=BurnResponse)
    async def burn_case(
        game_id: UUID,
        body: BurnCaseModel,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.apply(game_id, principal_id, body)

    @staticmethod
    @game_router.post("/game/{game_id}/acceptDeal", response_model=AcceptDealResponse)
    async def accept_deal(
        game_id: UUID,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.apply(game_id, principal_id, AcceptDealModel())

    @staticmethod
    @game_router.post("/game/{game_id}/finalReveal", response_model=FinalRevealResponse)
    async def final_reveal(
        game_id: UUID,
        body: FinalRevealModel | None = None,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.apply(game_id, principal_id, body or FinalRevealModel())

    @staticmethod
    @game_router.post("/game/{game_id}/action")
    async def game_action(
        game_id: UUID,
        body: GameActionModel,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        """Any single action, selected by its ``operation`` field"""
        return await orchestrator.apply(game_id, principal_id, body)

    @staticmethod
    @game_router.post("/game/{game_id}/distributePrize", response_model=RetryDistributionResponse)
    async def distribute_prize(
        game_id: UUID,
        body: DistributePrizeModel,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        logging.info(f"prize distribution requested by {principal_id} for game {game_id}")
        return await orchestrator.distribute_prize(game_id, principal_id, body.prize_amount_cents)


class GameStateAPI:
    @staticmethod
    @game_router.get("/game/{game_id}", response_model=GameStateResponse)
    async def get_game(
        game_id: UUID,
        principal_id: str | None = Depends(optional_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.get_game_state(game_id, principal_id)

    @staticmethod
    @game_router.get("/game/{game_id}/statePublic", response_model=GameStateResponse)
    async def get_public_state(
        game_id: UUID,
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.get_game_state(game_id, None, public_only=True)

    @staticmethod
    @game_router.get("/games", response_model=GameListResponse)
    async def list_games(
        page: int = Query(1),
        limit: int = Query(10),
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.list_games(principal_id, page, limit)
