# flasharb/price_oracle.py
"""
USD price sources for profit and gas conversion
"""

import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Tuple

from web3 import Web3

from flasharb.config import NATIVE_PRICE_USD
from flasharb.pairs import Token

logger = logging.getLogger(__name__)

STABLE_SYMBOLS = {"DAI", "USDC", "USDC.e", "USDT"}

# Fixed reference prices for non-stable tokens
REFERENCE_PRICES_USD: Dict[str, Decimal] = {
    "WETH": Decimal("2000"),
    "WMATIC": Decimal("0.5"),
    "WPOL": Decimal("0.5"),
    "WBTC": Decimal("30000"),
}

DEFAULT_PRICE_USD = Decimal("1")


class PriceOracle(ABC):
    """Converts token amounts and native gas into USD"""

    @abstractmethod
    async def token_price_usd(self, token: Token) -> Decimal:
        ...

    @abstractmethod
    async def native_price_usd(self) -> Decimal:
        ...


class FixedPriceOracle(PriceOracle):
    """
    Pegged stables at $1, a small table of reference prices, $1 for the rest
    """

    def __init__(
        self,
        prices: Dict[str, Decimal] = None,
        native_price: Decimal = NATIVE_PRICE_USD,
    ):
        self.prices = dict(REFERENCE_PRICES_USD if prices is None else prices)
        self.native_price = Decimal(native_price)

    def price_for_symbol(self, symbol: str) -> Decimal:
        if symbol in STABLE_SYMBOLS:
            return Decimal(1)
        return self.prices.get(symbol, DEFAULT_PRICE_USD)

    async def token_price_usd(self, token: Token) -> Decimal:
        return self.price_for_symbol(token.symbol)

    async def native_price_usd(self) -> Decimal:
        return self.native_price


# =============================================================================
# CHAINLINK ORACLE INTEGRATION
# =============================================================================

CHAINLINK_ABI = [
    {
        "name": "latestRoundData",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
]

# Chainlink Price Feeds on Polygon, keyed by token symbol
CHAINLINK_FEEDS = {
    "WMATIC": Web3.to_checksum_address("0xAB594600376Ec9fD91F8e885dADF0CE036862dE0"),  # MATIC/USD
    "WETH": Web3.to_checksum_address("0xF9680D99D6C9589e2a93a78A04A279e509205945"),    # ETH/USD
    "WBTC": Web3.to_checksum_address("0xc907E116054Ad103354f2D350FD2514433D57F6f"),    # BTC/USD
    "LINK": Web3.to_checksum_address("0xd9FFdb71EbE7496cC440152d43986Aae0AB76665"),    # LINK/USD
    "AAVE": Web3.to_checksum_address("0x72484B12719E23115761D5DA1646945632979bB6"),    # AAVE/USD
}

NATIVE_FEED_SYMBOL = "WMATIC"


class ChainlinkPriceOracle(PriceOracle):
    """
    Chainlink feeds with a short cache; falls back to the fixed table
    for unknown symbols or on any feed error
    """

    def __init__(self, chain, fallback: FixedPriceOracle = None, ttl_seconds: float = 10):
        self.chain = chain
        self.fallback = fallback or FixedPriceOracle()
        self._price_cache: Dict[str, Tuple[Decimal, float]] = {}
        self._price_cache_ttl = ttl_seconds

    async def _get_chainlink_price(self, symbol: str) -> Decimal:
        """Get price from Chainlink oracle with caching"""
        now = time.time()

        if symbol in self._price_cache:
            cached_price, cached_time = self._price_cache[symbol]
            if now - cached_time < self._price_cache_ttl:
                return cached_price

        feed_address = CHAINLINK_FEEDS.get(symbol)
        if not feed_address:
            return self.fallback.price_for_symbol(symbol)

        try:
            feed = self.chain.contract(feed_address, CHAINLINK_ABI)
            _, answer, _, _, _ = await feed.functions.latestRoundData().call()
            decimals = await feed.functions.decimals().call()
            price = Decimal(answer) / Decimal(10 ** decimals)
        except Exception as e:
            logger.warning(f"Chainlink {symbol} feed failed, using fallback price: {e}")
            return self.fallback.price_for_symbol(symbol)

        self._price_cache[symbol] = (price, now)
        return price

    async def token_price_usd(self, token: Token) -> Decimal:
        if token.symbol in STABLE_SYMBOLS:
            return Decimal(1)
        return await self._get_chainlink_price(token.symbol)

    async def native_price_usd(self) -> Decimal:
        return await self._get_chainlink_price(NATIVE_FEED_SYMBOL)
