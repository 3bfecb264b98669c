import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.logs import DISCARD

PYUSD_DECIMALS = 6
RECEIPT_TIMEOUT_SECONDS = 120

# Subset of the ERC-20 ABI used here
PYUSD_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def cents_to_units(cents: int) -> int:
    """Cents to PYUSD base units (6 decimals)."""
    return cents * 10 ** (PYUSD_DECIMALS - 2)


def units_to_pyusd(units: int) -> Decimal:
    return Decimal(units).scaleb(-PYUSD_DECIMALS)


@dataclass
class DistributionResult:
    success: bool
    tx_hash: str | None = None
    error: str | None = None


class PyusdClient:
    """Entry-fee verification and prize payout on the PYUSD token contract."""

    def __init__(
        self,
        rpc_url: str,
        token_address: str,
        admin_address: str,
        admin_private_key: str | None = None,
    ):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
        self.token_address = Web3.to_checksum_address(token_address)
        self.admin_address = Web3.to_checksum_address(admin_address)
        self.admin_private_key = admin_private_key
        self.contract = self.w3.eth.contract(address=self.token_address, abi=PYUSD_ABI)

    async def verify_transfer(
        self, tx_hash: str, from_address: str, to_address: str, expected_cents: int
    ) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._verify_transfer, tx_hash, from_address, to_address, expected_cents
        )

    async def distribute_funds(self, to_address: str, amount_cents: int) -> DistributionResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._distribute_funds, to_address, amount_cents)

    async def get_balance(self, address: str) -> int:
        """PYUSD balance of ``address`` in base units"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.contract.functions.balanceOf(Web3.to_checksum_address(address)).call
        )

    def _verify_transfer(
        self, tx_hash: str, from_address: str, to_address: str, expected_cents: int
    ) -> bool:
        """Check that ``tx_hash`` moved exactly ``expected_cents`` of PYUSD from -> to

        Args:
            tx_hash (str): Transaction the client says paid the entry fee
            from_address (str): Payer wallet
            to_address (str): Receiving (admin) wallet
            expected_cents (int): Amount in cents

        Returns:
            bool: True if a matching Transfer event is in a successful receipt
        """
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            logging.warning(f"Payment transaction {tx_hash} not found")
            return False

        if receipt is None or receipt["status"] != 1:
            return False

        expected_units = cents_to_units(expected_cents)
        transfers = self.contract.events.Transfer().process_receipt(receipt, errors=DISCARD)
        for transfer in transfers:
            if transfer["address"].lower() != self.token_address.lower():
                continue
            args = transfer["args"]
            if (
                args["from"].lower() == from_address.lower()
                and args["to"].lower() == to_address.lower()
                and args["value"] == expected_units
            ):
                return True

        logging.warning(f"No matching PYUSD transfer in {tx_hash}")
        return False

    def _distribute_funds(self, to_address: str, amount_cents: int) -> DistributionResult:
        if not self.admin_private_key:
            return DistributionResult(success=False, error="Admin private key is not configured")

        amount_units = cents_to_units(amount_cents)
        try:
            balance = self.contract.functions.balanceOf(self.admin_address).call()
            if balance < amount_units:
                return DistributionResult(
                    success=False,
                    error="Insufficient admin wallet balance for prize distribution",
                )

            account = self.w3.eth.account.from_key(self.admin_private_key)
            tx = self.contract.functions.transfer(
                Web3.to_checksum_address(to_address), amount_units
            ).build_transaction(
                {
                    "from": account.address,
                    "nonce": self.w3.eth.get_transaction_count(account.address),
                }
            )
            signed = account.sign_transaction(tx)
            sent_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(
                sent_hash, timeout=RECEIPT_TIMEOUT_SECONDS
            )
        except Exception as e:
            logging.error(f"Error distributing prize to {to_address}: {e}")
            return DistributionResult(success=False, error=str(e) or "Failed to distribute prize")

        if receipt["status"] != 1:
            return DistributionResult(success=False, error="Transaction failed")
        return DistributionResult(success=True, tx_hash=Web3.to_hex(receipt["transactionHash"]))
