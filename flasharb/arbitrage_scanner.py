# flasharb/arbitrage_scanner.py
"""
Cross-DEX Arbitrage Detector
Per block: compare router quotes for every verified pair, size the best
round trip, and hand profitable ones to the execution engine
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from functools import partial
from typing import Dict, List, Optional, Tuple

from flasharb.config import (
    RECHECK_DELAY_SECONDS,
    REFERENCE_AMOUNT,
    TABLE_FORCE_EVERY_BLOCKS,
    TRADE_SIZES,
    NetworkConfig,
    Settings,
)
from flasharb.executor import ExecutionEngine, ExecutionGate
from flasharb.filters.liquidity_check import LiquidityValidator
from flasharb.flash_loan import FlashLoanBot
from flasharb.pairs import DexInfo, Token, TokenPair, TokenRegistry, build_dexes, to_human, to_raw
from flasharb.price_oracle import FixedPriceOracle, PriceOracle
from flasharb.profit_calculator import ProfitBreakdown, ProfitCalculator, price_divergence_pct
from flasharb.quote_engine import PriceQuote, QuoteEngine
from flasharb.status import PairState, StatusReporter
from flasharb.work_queue import PairCheckQueue

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class Opportunity:
    """Flash loan round trip: borrow from_token, buy on one DEX, sell back on the other"""
    id: str
    pair_name: str
    from_token: Token
    to_token: Token
    loan_amount: int

    buy_dex: DexInfo
    sell_dex: DexInfo
    path_out: List[str]
    path_back: List[str]

    mid_amount: int
    final_amount: int
    profit: ProfitBreakdown
    gas_price: int

    detected_at: float

    @property
    def net_profit_usd(self) -> Decimal:
        return self.profit.net_profit_usd


# =============================================================================
# ARBITRAGE DETECTOR
# =============================================================================

class ArbitrageDetector:
    """
    Owns the token registry, verified pairs, check queue, execution gate
    and status table. `on_new_block` is the only scheduling entry point.
    """

    def __init__(
        self,
        chain,
        network: NetworkConfig,
        min_profit_usd: Decimal = Decimal("0.5"),
        price_difference_threshold: Decimal = Decimal("0.1"),
        check_delay: float = 0.2,
        base_token: str = "DAI",
        token_pairs: List[Tuple[str, str, str]] = None,
        use_dex_path: bool = False,
        execute: bool = False,
        oracle: PriceOracle = None,
        recheck_delay: float = RECHECK_DELAY_SECONDS,
    ):
        self.chain = chain
        self.network = network
        self.min_profit_usd = Decimal(min_profit_usd)
        self.price_difference_threshold = Decimal(price_difference_threshold)
        self.base_token = base_token
        self.token_pairs = token_pairs or []
        self.execute = execute
        self.recheck_delay = recheck_delay

        self.dexes = build_dexes(network.quickswap_router, network.sushiswap_router)
        self.registry = TokenRegistry(chain)
        self.quote_engine = QuoteEngine(chain)
        self.validator = LiquidityValidator(self.quote_engine, self.registry, self.dexes)
        self.queue = PairCheckQueue(check_delay)
        self.oracle = oracle or FixedPriceOracle()
        self.profit_calculator = ProfitCalculator(self.oracle)
        self.reporter = StatusReporter(
            [dex.short_name for dex in self.dexes], min_profit_usd=self.min_profit_usd
        )

        self.gate = ExecutionGate()
        self.flash_loan_bot = FlashLoanBot(chain, network.flash_loan_contract)
        self.executor = ExecutionEngine(
            self.flash_loan_bot,
            self.gate,
            reporter=self.reporter,
            chain=chain,
            use_dex_path=use_dex_path,
        )

        self.pairs: List[TokenPair] = []
        self.block_number = 0
        self.gas_price = 0
        self._rechecks: Dict[str, asyncio.Task] = {}
        self._opportunity_counter = 0

    @classmethod
    def from_settings(
        cls,
        chain,
        settings: Settings,
        network: NetworkConfig,
        execute: bool = False,
        oracle: PriceOracle = None,
    ) -> "ArbitrageDetector":
        return cls(
            chain,
            network,
            min_profit_usd=settings.min_profit_usd,
            price_difference_threshold=settings.price_difference_threshold,
            check_delay=settings.check_delay,
            base_token=settings.base_token,
            token_pairs=settings.token_pairs,
            use_dex_path=settings.use_dex_path,
            execute=execute,
            oracle=oracle,
        )

    @property
    def history(self):
        return self.executor.history

    def _generate_opportunity_id(self) -> str:
        """Generate unique opportunity ID"""
        self._opportunity_counter += 1
        return f"ARB-{int(time.time())}-{self._opportunity_counter}"

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def initialize(self) -> int:
        """
        Load tokens, build pairs and validate liquidity before polling.
        Returns the number of verified pairs.
        """
        logger.info("Initializing arbitrage detector...")
        await self.registry.load(self.network.tokens)

        self.pairs = self.registry.build_pairs(self.base_token, self.token_pairs)
        logger.info(f"Initialized {len(self.pairs)} token pairs for monitoring")

        await self.validator.validate_all(self.pairs)
        for pair in self.pairs:
            if self.validator.is_verified(pair):
                self.reporter.reset(pair.name, PairState.VERIFIED)

        self.reporter.render(force=True)
        return len(self.validator.verified)

    async def close(self):
        """Cancel pending liquidity re-checks"""
        tasks = list(self._rechecks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._rechecks.clear()

    # -------------------------------------------------------------------------
    # Block handling
    # -------------------------------------------------------------------------

    async def on_new_block(self, block_number: int, gas_price: int) -> bool:
        """
        Push every verified pair through the rate-limited queue.
        Returns False when skipped (execution in flight or a pass still draining).
        """
        if self.gate.locked:
            logger.debug(f"Block {block_number}: execution in progress, skipping checks")
            return False

        self.block_number = block_number
        self.gas_price = gas_price
        self.reporter.set_block(block_number, gas_price)

        if block_number % TABLE_FORCE_EVERY_BLOCKS == 0:
            self.reporter.render(force=True)

        verified_pairs = [pair for pair in self.pairs if self.validator.is_verified(pair)]
        # One USD gas estimate per block, shared by every pair check
        gas_cost_usd = await self.profit_calculator.gas_cost_usd(gas_price)
        handler = partial(
            self.check_pair_arbitrage,
            block_number=block_number,
            gas_price=gas_price,
            gas_cost_usd=gas_cost_usd,
        )

        started = await self.queue.process(verified_pairs, handler)
        if started:
            self.reporter.render()
        return started

    async def check_pair_arbitrage(
        self,
        pair: TokenPair,
        block_number: int = None,
        gas_price: int = None,
        gas_cost_usd: Decimal = None,
    ) -> Optional[Opportunity]:
        """
        Quote, compare and size one pair.
        Returns the best opportunity when it clears the minimum profit.
        """
        block_number = self.block_number if block_number is None else block_number
        gas_price = self.gas_price if gas_price is None else gas_price

        if self.gate.locked:
            return None

        if not self.validator.is_verified(pair):
            logger.debug(f"Skipping {pair.name}: not verified to have liquidity on both exchanges")
            return None

        from_token = self.registry.resolve(pair.from_address)
        to_token = self.registry.resolve(pair.to_address)
        if not from_token or not to_token:
            logger.debug(f"Token details not found for {pair.name}")
            return None

        name = pair.name

        try:
            reference = to_raw(from_token, REFERENCE_AMOUNT)
            path = [from_token.address, to_token.address]
            quotes: List[PriceQuote] = await asyncio.gather(*(
                self.quote_engine.quote(dex, reference, path, block_number) for dex in self.dexes
            ))

            ordered = sorted(quotes, key=lambda q: q.amount_out)
            low, high = ordered[0], ordered[-1]
            diff_pct = price_divergence_pct(high.amount_out, low.amount_out)
            if gas_cost_usd is None:
                gas_cost_usd = await self.profit_calculator.gas_cost_usd(gas_price)
            above_threshold = diff_pct > self.price_difference_threshold

            self.reporter.update(
                name,
                prices={q.dex.short_name: to_human(to_token, q.amount_out) for q in quotes},
                diff_pct=diff_pct,
                direction=f"{high.dex.short_name}>{low.dex.short_name}",
                gas_cost_usd=gas_cost_usd,
                state=PairState.ANALYZING if above_threshold else PairState.NO_ARB,
                profit_usd=None,
            )

            if not above_threshold:
                return None

            # Buy to_token on the DEX paying the most of it, sell back on the other
            best = None
            for size in TRADE_SIZES:
                candidate = await self._check_route(
                    to_raw(from_token, size), name, from_token, to_token,
                    high.dex, low.dex, gas_price, gas_cost_usd,
                )
                if candidate and (best is None or candidate.net_profit_usd > best.net_profit_usd):
                    best = candidate

        except Exception as e:
            self._remove_pair(pair, e)
            return None

        if best is None:
            self.reporter.set_state(name, PairState.NOT_PROFITABLE)
            return None

        if best.net_profit_usd < self.min_profit_usd:
            self.reporter.set_state(name, PairState.LOW_PROFIT, best.net_profit_usd)
            return None

        self.reporter.set_state(name, PairState.PROFITABLE, best.net_profit_usd)
        self.reporter.render(force=True)
        logger.info(
            f"💰 PROFITABLE: {name} buy on {best.buy_dex.name}, sell on {best.sell_dex.name}, "
            f"loan {to_human(from_token, best.loan_amount)} {from_token.symbol}, "
            f"net ${best.net_profit_usd:.4f} ({best.profit.profit_bps} bps gross)"
        )

        if self.execute:
            logger.info(f"🚀 Executing arbitrage for {name}...")
            await self.executor.execute_opportunity(best, block_number)
        else:
            logger.info(f"[{best.id}] SCAN mode - not executing")

        return best

    async def _check_route(
        self,
        loan_amount: int,
        pair_name: str,
        from_token: Token,
        to_token: Token,
        buy_dex: DexInfo,
        sell_dex: DexInfo,
        gas_price: int,
        gas_cost_usd: Decimal = None,
    ) -> Optional[Opportunity]:
        """One trade size; None unless both gross and net profit are positive"""
        path_out = [from_token.address, to_token.address]
        path_back = [to_token.address, from_token.address]

        mid_amount = await self.quote_engine.get_amount_out(buy_dex, loan_amount, path_out)
        final_amount = await self.quote_engine.get_amount_out(sell_dex, mid_amount, path_back)

        if final_amount <= loan_amount:
            return None

        breakdown = await self.profit_calculator.evaluate(
            from_token, loan_amount, final_amount, gas_price, gas_cost_usd
        )
        if not breakdown.is_positive:
            return None

        return Opportunity(
            id=self._generate_opportunity_id(),
            pair_name=pair_name,
            from_token=from_token,
            to_token=to_token,
            loan_amount=loan_amount,
            buy_dex=buy_dex,
            sell_dex=sell_dex,
            path_out=path_out,
            path_back=path_back,
            mid_amount=mid_amount,
            final_amount=final_amount,
            profit=breakdown,
            gas_price=gas_price,
            detected_at=time.time(),
        )

    # -------------------------------------------------------------------------
    # Error recovery
    # -------------------------------------------------------------------------

    def _remove_pair(self, pair: TokenPair, error: Exception):
        logger.warning(f"⚠️ Error checking {pair.name} arbitrage, removing from verified pairs: {error}")
        self.validator.mark_unverified(pair)
        self.reporter.reset(pair.name, PairState.REMOVED)
        self.schedule_recheck(pair)

    def schedule_recheck(self, pair: TokenPair) -> bool:
        """Re-probe liquidity every cooldown until it returns; at most one pending per pair"""
        pending = self._rechecks.get(pair.name)
        if pending is not None and not pending.done():
            return False

        self._rechecks[pair.name] = asyncio.create_task(self._recheck_later(pair))
        return True

    async def _recheck_later(self, pair: TokenPair):
        try:
            # Keep probing on the cooldown until liquidity returns
            while not await self._sleep_and_recheck(pair):
                logger.info(f"{pair.name} still lacks liquidity, next check in {self.recheck_delay}s")
            self.reporter.reset(pair.name, PairState.RECHECKED)
        finally:
            if self._rechecks.get(pair.name) is asyncio.current_task():
                del self._rechecks[pair.name]

    async def _sleep_and_recheck(self, pair: TokenPair) -> bool:
        await asyncio.sleep(self.recheck_delay)
        return await self.validator.recheck(pair)
