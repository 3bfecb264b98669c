import logging

from fastapi import APIRouter, Depends

from dealcase.authentication.web3auth import require_principal
from dealcase.models.dc_models import RetryDistributionModel
from dealcase.models.schema_models import (
    AdminBalanceResponse,
    FailedDistributionsResponse,
    RetryDistributionResponse,
)
from dealcase.routers.game import get_orchestrator
from dealcase.services.game_orchestrator import GameOrchestrator

admin_router = APIRouter(prefix="/api/admin")


class PrizeAdminAPI:
    @staticmethod
    @admin_router.get("/failed-distributions", response_model=FailedDistributionsResponse)
    async def failed_distributions(
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        games = await orchestrator.failed_distributions(principal_id)
        return FailedDistributionsResponse(games=games, count=len(games))

    @staticmethod
    @admin_router.post("/retry-prize-distribution", response_model=RetryDistributionResponse)
    async def retry_prize_distribution(
        body: RetryDistributionModel,
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        logging.info(f"Admin {principal_id} retries prize distribution for game {body.game_id}")
        return await orchestrator.retry_distribution(principal_id, body.game_id)

    @staticmethod
    @admin_router.get("/check-balance", response_model=AdminBalanceResponse)
    async def check_balance(
        principal_id: str = Depends(require_principal),
        orchestrator: GameOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.admin_balance(principal_id)
