# flasharb/chain_client.py
"""
Chain Client
Async JSON-RPC connection: reads, contract access, signed submissions and health
"""

import logging
import time
from typing import Any, Tuple

from web3 import AsyncWeb3, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from flasharb.config import RECEIPT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

MAX_RPC_LATENCY = 2.0  # seconds


class ChainClient:
    """
    Thin wrapper over AsyncWeb3 used by every other component
    """

    def __init__(self, w3: AsyncWeb3, private_key: str):
        self.w3 = w3
        self.account = w3.eth.account.from_key(private_key)
        self.address = self.account.address
        self.rpc_url = ""

    @classmethod
    async def connect(cls, rpc_url: str, private_key: str) -> "ChainClient":
        """Open the HTTP provider and verify the endpoint answers"""
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        if not await w3.is_connected():
            raise ConnectionError(f"RPC not connected: {rpc_url}")

        client = cls(w3, private_key)
        client.rpc_url = rpc_url
        return client

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def block_number(self) -> int:
        return await self.w3.eth.block_number

    async def gas_price(self) -> int:
        """Current gas price in wei"""
        return await self.w3.eth.gas_price

    async def chain_id(self) -> int:
        return await self.w3.eth.chain_id

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(Web3.to_checksum_address(address))

    def contract(self, address: str, abi: list):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def send_contract_transaction(self, fn: Any, gas: int, gas_price: int) -> str:
        """
        Build, sign and broadcast a contract function call.
        Returns the transaction hash as a 0x-prefixed hex string.
        """
        nonce = await self.w3.eth.get_transaction_count(self.address, "pending")
        tx = await fn.build_transaction({
            "from": self.address,
            "nonce": nonce,
            "gas": gas,
            "gasPrice": gas_price,
            "chainId": await self.chain_id(),
        })

        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float = RECEIPT_TIMEOUT_SECONDS):
        return await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def check(self) -> Tuple[bool, str]:
        """
        Check RPC health
        Returns (is_healthy, status_message)
        """
        try:
            start = time.time()
            latest = await self.w3.eth.block_number
            latency = time.time() - start

            if latency > MAX_RPC_LATENCY:
                return False, f"High latency {latency:.2f}s"

            return True, f"OK (latency={latency:.2f}s, block={latest})"

        except Exception as e:
            return False, str(e)
