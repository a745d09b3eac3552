# flasharb/filters/liquidity_check.py
"""
Liquidity Validator
A pair is tradable only when every DEX quotes a non-zero output for a probe amount
"""

import asyncio
import logging
from typing import Iterable, List, Set

from flasharb.config import PROBE_AMOUNT
from flasharb.pairs import DexInfo, Token, TokenPair, TokenRegistry, to_raw
from flasharb.quote_engine import QuoteEngine

logger = logging.getLogger(__name__)


class LiquidityValidator:
    """
    Owns the verified-pair set (keyed by pair name)
    """

    def __init__(
        self,
        quote_engine: QuoteEngine,
        registry: TokenRegistry,
        dexes: List[DexInfo],
    ):
        self.quote_engine = quote_engine
        self.registry = registry
        self.dexes = dexes
        self.verified: Set[str] = set()

    def is_verified(self, pair: TokenPair) -> bool:
        return pair.name in self.verified

    def mark_unverified(self, pair: TokenPair):
        self.verified.discard(pair.name)

    async def check_pair_liquidity(self, dex: DexInfo, token_a: Token, token_b: Token) -> bool:
        """
        Quote a small amount of token_a on `dex`.
        A revert or any call error means no pool, not a failure.
        """
        probe = to_raw(token_a, PROBE_AMOUNT)
        try:
            amounts = await self.quote_engine.get_amounts_out(
                dex, probe, [token_a.address, token_b.address]
            )
        except Exception:
            return False

        return bool(amounts) and len(amounts) > 1 and amounts[1] > 0

    async def _probe_pair(self, pair: TokenPair) -> bool:
        token_a = self.registry.resolve(pair.from_address)
        token_b = self.registry.resolve(pair.to_address)
        if not token_a or not token_b:
            return False

        results = await asyncio.gather(*(
            self.check_pair_liquidity(dex, token_a, token_b) for dex in self.dexes
        ))
        has_liquidity = all(results)

        if has_liquidity:
            self.verified.add(pair.name)
        else:
            missing = [dex.name for dex, ok in zip(self.dexes, results) if not ok]
            logger.info(f"❌ {pair.name} missing liquidity on {' and '.join(missing)}")
            self.verified.discard(pair.name)

        return has_liquidity

    async def validate_all(self, pairs: Iterable[TokenPair]) -> Set[str]:
        """
        Probe every pair on every DEX concurrently.
        Returns the verified set after the pass.
        """
        pairs = list(pairs)
        logger.info("Validating liquidity for all pairs...")

        results = await asyncio.gather(*(self._probe_pair(pair) for pair in pairs))
        for pair, ok in zip(pairs, results):
            if ok:
                logger.info(f"✅ {pair.name} has liquidity on both exchanges")

        logger.info(
            f"Liquidity validation complete: {sum(results)} out of {len(pairs)} pairs have liquidity"
        )
        return set(self.verified)

    async def recheck(self, pair: TokenPair) -> bool:
        """Re-probe one pair after it was dropped for an error"""
        try:
            ok = await self._probe_pair(pair)
        except Exception as e:
            logger.error(f"Error rechecking {pair.name} liquidity: {e}")
            return False

        if ok:
            logger.info(f"✅ {pair.name} has regained liquidity on both exchanges")
        return ok
