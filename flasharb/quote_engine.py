# flasharb/quote_engine.py
"""
Router Quote Engine
getAmountsOut quotes against the configured V2 routers
"""

from dataclasses import dataclass
from typing import Dict, List

from web3 import Web3

from flasharb.pairs import DexInfo

# =============================================================================
# ROUTER ABI (Universal for V2 forks)
# =============================================================================

ROUTER_V2_ABI = [
    {
        "name": "getAmountsOut",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
]


class QuoteError(Exception):
    """A router call reverted, failed, or returned nothing usable"""

    def __init__(self, dex: str, message: str):
        super().__init__(f"{dex}: {message}")
        self.dex = dex


@dataclass(frozen=True)
class PriceQuote:
    """Amount out for a fixed amount in, on one DEX, at one block"""
    dex: DexInfo
    amount_in: int
    amount_out: int
    block_number: int = 0


class QuoteEngine:
    """
    Multi-DEX quote access with cached router contracts
    """

    def __init__(self, chain):
        self.chain = chain
        self._router_cache: Dict[str, object] = {}

    def _get_router(self, dex: DexInfo):
        """Get cached router contract"""
        if dex.name not in self._router_cache:
            self._router_cache[dex.name] = self.chain.contract(dex.router, ROUTER_V2_ABI)
        return self._router_cache[dex.name]

    async def get_amounts_out(self, dex: DexInfo, amount_in: int, path: List[str]) -> List[int]:
        """Raw getAmountsOut call; router errors propagate"""
        router = self._get_router(dex)
        checksum_path = [Web3.to_checksum_address(t) for t in path]
        return await router.functions.getAmountsOut(amount_in, checksum_path).call()

    async def get_amount_out(self, dex: DexInfo, amount_in: int, path: List[str]) -> int:
        """
        Final output amount for a swap along `path`.
        Any failure or a non-positive result raises QuoteError.
        """
        try:
            amounts = await self.get_amounts_out(dex, amount_in, path)
        except Exception as e:
            raise QuoteError(dex.name, str(e)) from e

        if not amounts or len(amounts) < len(path) or amounts[-1] <= 0:
            raise QuoteError(dex.name, f"no output for {amount_in} along {len(path)}-token path")

        return amounts[-1]

    async def quote(
        self,
        dex: DexInfo,
        amount_in: int,
        path: List[str],
        block_number: int = 0,
    ) -> PriceQuote:
        amount_out = await self.get_amount_out(dex, amount_in, path)
        return PriceQuote(dex=dex, amount_in=amount_in, amount_out=amount_out, block_number=block_number)
