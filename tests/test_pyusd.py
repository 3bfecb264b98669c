from decimal import Decimal

import pytest
from web3 import Web3

from dealcase.services.pyusd import DistributionResult, PyusdClient, cents_to_units, units_to_pyusd

ADMIN_KEY = "0x" + "11" * 32
TOKEN = "0x6c3ea9036406852006290770bedfcaba0e23a0e8"
PLAYER = "0xa11ce00000000000000000000000000000000001"
SENT_HASH = b"\xab" * 32


class FakeCall:
    def __init__(self, value):
        self.value = value

    def call(self):
        return self.value


class FakeTransfer:
    def __init__(self, to_address, units):
        self.to_address = to_address
        self.units = units

    def build_transaction(self, params):
        return {
            "to": Web3.to_checksum_address(TOKEN),
            "value": 0,
            "gas": 60000,
            "gasPrice": 10**9,
            "chainId": 11155111,
            "data": "0xa9059cbb",
            **params,
        }


class FakeFunctions:
    def __init__(self, balance):
        self.balance = balance
        self.transfers = []

    def balanceOf(self, address):
        return FakeCall(self.balance)

    def transfer(self, to_address, units):
        self.transfers.append((to_address, units))
        return FakeTransfer(to_address, units)


class FakeContract:
    def __init__(self, balance):
        self.functions = FakeFunctions(balance)


class FakeEth:
    """Chain calls only; signing goes through web3's real account API."""

    def __init__(self, account_api, receipt_status=1):
        self.account = account_api
        self.receipt_status = receipt_status
        self.sent = []

    def get_transaction_count(self, address):
        return 7

    def send_raw_transaction(self, raw):
        self.sent.append(bytes(raw))
        return SENT_HASH

    def wait_for_transaction_receipt(self, tx_hash, timeout=None):
        return {"status": self.receipt_status, "transactionHash": tx_hash}


class FakeWeb3:
    def __init__(self, eth):
        self.eth = eth


def make_client(balance_units, receipt_status=1, private_key=ADMIN_KEY):
    account_api = PyusdClient("http://localhost:8545", TOKEN, PLAYER).w3.eth.account
    admin_address = account_api.from_key(ADMIN_KEY).address
    client = PyusdClient("http://localhost:8545", TOKEN, admin_address, private_key)
    client.w3 = FakeWeb3(FakeEth(account_api, receipt_status))
    client.contract = FakeContract(balance_units)
    return client


def test_unit_conversions():
    assert cents_to_units(1234) == 12_340_000
    assert units_to_pyusd(12_500_000) == Decimal("12.5")


@pytest.mark.asyncio
async def test_distribute_funds_sends_signed_transfer():
    client = make_client(balance_units=cents_to_units(5000))

    result = await client.distribute_funds(PLAYER, 2500)

    assert result.success
    assert result.tx_hash == "0x" + "ab" * 32
    assert client.contract.functions.transfers == [
        (Web3.to_checksum_address(PLAYER), 25_000_000)
    ]
    assert len(client.w3.eth.sent) == 1
    signer = client.w3.eth.account.recover_transaction(client.w3.eth.sent[0])
    assert signer == client.admin_address


@pytest.mark.asyncio
async def test_distribute_funds_refuses_when_balance_is_short():
    client = make_client(balance_units=cents_to_units(100))

    result = await client.distribute_funds(PLAYER, 2500)

    assert not result.success
    assert "Insufficient admin wallet balance" in result.error
    assert client.w3.eth.sent == []


@pytest.mark.asyncio
async def test_distribute_funds_reports_reverted_transaction():
    client = make_client(balance_units=cents_to_units(5000), receipt_status=0)

    result = await client.distribute_funds(PLAYER, 2500)

    assert result == DistributionResult(success=False, error="Transaction failed")


@pytest.mark.asyncio
async def test_distribute_funds_needs_private_key():
    client = make_client(balance_units=cents_to_units(5000), private_key=None)

    result = await client.distribute_funds(PLAYER, 2500)

    assert result.error == "Admin private key is not configured"


@pytest.mark.asyncio
async def test_get_balance_reads_token_contract():
    client = make_client(balance_units=12_500_000)

    assert await client.get_balance(PLAYER) == 12_500_000
