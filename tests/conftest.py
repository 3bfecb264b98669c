import asyncio
import logging
import random

import pytest
import pytest_asyncio

from dealcase.create_sqlite_engine import create_sqlite_engine
from dealcase.db import create_session_factory, create_tables
from dealcase.services.game_db import GameStore
from dealcase.services.game_orchestrator import GameOrchestrator
from dealcase.services.prize_distribution import PrizeDistributionService
from dealcase.services.pyusd import DistributionResult

logging.basicConfig(level=logging.INFO)

OWNER = "0xA11ce00000000000000000000000000000000001"
STRANGER = "0xb0b0000000000000000000000000000000000002"
ADMIN = "0xAd00000000000000000000000000000000000003"


class FakePayments:
    """Stands in for PyusdClient; records every call."""

    def __init__(self, payment_valid=True, distribution_ok=True):
        self.payment_valid = payment_valid
        self.distribution_ok = distribution_ok
        self.verify_calls = []
        self.distribute_calls = []
        self.balance_units = 12_500_000

    async def verify_transfer(self, tx_hash, from_address, to_address, expected_cents):
        self.verify_calls.append((tx_hash, from_address, to_address, expected_cents))
        return self.payment_valid

    async def distribute_funds(self, to_address, amount_cents):
        self.distribute_calls.append((to_address, amount_cents))
        if self.distribution_ok:
            return DistributionResult(success=True, tx_hash=f"0xprize{len(self.distribute_calls)}")
        return DistributionResult(success=False, error="Insufficient admin wallet balance")

    async def get_balance(self, address):
        return self.balance_units


class BarrierStore(GameStore):
    """Holds every reader until ``parties`` reads happened, so their writes race."""

    def __init__(self, Session, parties=2):
        super().__init__(Session)
        self.parties = parties
        self.arrived = 0
        self.all_read = asyncio.Event()

    async def get_game_by_id(self, game_id):
        game = await super().get_game_by_id(game_id)
        self.arrived += 1
        if self.arrived >= self.parties:
            self.all_read.set()
        await self.all_read.wait()
        return game


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_sqlite_engine(tmp_path / "dealcase_test.db")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return GameStore(session_factory)


@pytest.fixture
def payments():
    return FakePayments()


def build_orchestrator(store, payments=None, require_payment=False, seed=None):
    return GameOrchestrator(
        store,
        PrizeDistributionService(store, payments),
        payments=payments,
        admin_address=ADMIN,
        require_payment=require_payment,
        rng=random.Random(seed) if seed is not None else None,
    )


@pytest.fixture
def orchestrator(store):
    return build_orchestrator(store)
