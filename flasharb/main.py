# flasharb/main.py
"""
Flash Loan Arbitrage Bot Main Loop

THIS IS THE ENTRY POINT - Run with: python -m flasharb.main

MODES:
1. SCAN: Detect and report opportunities (safe)
2. EXECUTE: Submit flash loan transactions for profitable opportunities
3. TEST: Initialise, run one block pass, print the summary and exit
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional, Set

from flasharb.arbitrage_scanner import ArbitrageDetector
from flasharb.chain_client import ChainClient
from flasharb.config import FALLBACK_GAS_PRICE_GWEI, ConfigError, Settings, load_settings
from flasharb.gas import WEI_PER_NATIVE, gwei
from flasharb.price_oracle import ChainlinkPriceOracle, FixedPriceOracle, PriceOracle
from flasharb.status import format_execution_summary

LOG_DIR = Path(__file__).parent.parent / "logs"

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(level: str = "INFO"):
    LOG_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(LOG_DIR / f"bot_{datetime.now().strftime('%Y%m%d')}.log"),
        ]
    )


# =============================================================================
# BOT MODES
# =============================================================================

class BotMode:
    SCAN = "scan"          # Detect and report, no execution
    EXECUTE = "execute"    # Real flash loan transactions
    TEST = "test"          # One block pass, then exit


# =============================================================================
# MAIN BOT CLASS
# =============================================================================

class ArbitrageBot:
    """
    Polls for new blocks and hands each one to the detector
    """

    def __init__(self, settings: Settings, mode: str = BotMode.SCAN):
        self.settings = settings
        self.mode = mode
        self.running = False
        self.chain: Optional[ChainClient] = None
        self.detector: Optional[ArbitrageDetector] = None
        self._block_tasks: Set[asyncio.Task] = set()
        self._last_block = 0

    def stop(self):
        """Handle shutdown signals gracefully"""
        if self.running:
            logger.info("🛑 Shutdown signal received...")
        self.running = False

    def _install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except NotImplementedError:
                signal.signal(sig, lambda signum, frame: self.stop())

    def _build_oracle(self) -> PriceOracle:
        if self.settings.price_oracle == "chainlink":
            return ChainlinkPriceOracle(self.chain)
        return FixedPriceOracle()

    async def connect(self):
        """Connect, resolve the network and build the detector"""
        logger.info(f"Connecting to RPC: {self.settings.rpc_url}")
        self.chain = await ChainClient.connect(self.settings.rpc_url, self.settings.private_key)

        chain_id = await self.chain.chain_id()
        network = self.settings.network_for(chain_id)
        logger.info(f"✅ Connected to {network.name} (Chain ID: {chain_id})")
        logger.info(f"Wallet: {self.chain.address}")
        logger.info(f"Flash loan contract: {network.flash_loan_contract}")

        self.detector = ArbitrageDetector.from_settings(
            self.chain,
            self.settings,
            network,
            execute=self.mode == BotMode.EXECUTE,
            oracle=self._build_oracle(),
        )

    async def check_prerequisites(self) -> bool:
        """Check all prerequisites before starting"""
        logger.info("Checking prerequisites...")

        # 1. RPC Health
        ok, status = await self.chain.check()
        if not ok:
            logger.error(f"❌ RPC unhealthy: {status}")
            return False
        logger.info(f"✅ RPC healthy: {status}")

        # 2. Wallet balance for gas
        try:
            balance = Decimal(await self.chain.get_balance(self.chain.address)) / WEI_PER_NATIVE
            logger.info(f"MATIC balance: {balance:.4f}")
            if balance < Decimal("0.1"):
                logger.warning("⚠️ Low MATIC balance for gas!")
        except Exception as e:
            logger.error(f"❌ Balance check failed: {e}")
            return False

        # 3. Gas price
        try:
            logger.info(f"Current gas price: {gwei(await self.chain.gas_price()):.1f} gwei")
        except Exception as e:
            logger.warning(f"⚠️ Gas price check failed: {e}")

        logger.info("✅ All prerequisites checked")
        return True

    async def current_gas_price(self) -> int:
        try:
            return await self.chain.gas_price()
        except Exception as e:
            logger.warning(f"⚠️ Gas price fetch failed, using {FALLBACK_GAS_PRICE_GWEI} gwei: {e}")
            return FALLBACK_GAS_PRICE_GWEI * 10 ** 9

    async def poll_once(self) -> Optional[int]:
        """Dispatch the latest block if it is new; returns its number"""
        block_number = await self.chain.block_number()
        if block_number <= self._last_block:
            return None
        self._last_block = block_number

        gas_price = await self.current_gas_price()
        task = asyncio.create_task(self.detector.on_new_block(block_number, gas_price))
        self._block_tasks.add(task)
        task.add_done_callback(self._block_tasks.discard)
        return block_number

    async def run_test(self):
        """Single block pass, awaited inline"""
        logger.info("=" * 60)
        logger.info("🧪 QUICK TEST MODE")
        logger.info("=" * 60)

        block_number = await self.chain.block_number()
        gas_price = await self.current_gas_price()
        await self.detector.on_new_block(block_number, gas_price)
        self.detector.reporter.render(force=True)
        logger.info("✅ Quick test complete!")

    async def run(self) -> int:
        """
        Main bot loop
        Returns a process exit code
        """
        logger.info("=" * 60)
        logger.info("🚀 FLASH LOAN ARBITRAGE BOT STARTING")
        logger.info(f"Mode: {self.mode}")
        logger.info(f"Min profit: ${self.settings.min_profit_usd}")
        logger.info(f"Price difference threshold: {self.settings.price_difference_threshold}%")
        logger.info("=" * 60)

        try:
            await self.connect()
        except ConnectionError as e:
            logger.error(f"❌ {e}")
            return 1

        if not await self.check_prerequisites():
            logger.error("Prerequisites check failed. Exiting.")
            return 1

        verified = await self.detector.initialize()
        if verified == 0:
            logger.warning("⚠️ No pairs with liquidity on both exchanges")

        self.running = True
        self._install_signal_handlers()

        try:
            if self.mode == BotMode.TEST:
                await self.run_test()
                return 0

            logger.info(f"Monitoring new blocks every {self.settings.monitor_interval:.1f}s...")
            while self.running:
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error(f"Block polling error: {e}")
                await asyncio.sleep(self.settings.monitor_interval)

        finally:
            self.running = False
            for task in list(self._block_tasks):
                task.cancel()
            await asyncio.gather(*self._block_tasks, return_exceptions=True)
            await self.detector.close()
            logger.info(format_execution_summary(self.detector.history))
            logger.info("Bot stopped.")

        return 0


# =============================================================================
# ENTRY POINT
# =============================================================================

def main(argv=None):
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Polygon Flash Loan Arbitrage Bot")
    parser.add_argument(
        "--mode",
        choices=[BotMode.SCAN, BotMode.EXECUTE, BotMode.TEST],
        default=BotMode.SCAN,
        help="Bot mode: scan (observe only), execute (real flash loans), test (one pass)"
    )
    parser.add_argument(
        "--env",
        type=Path,
        default=None,
        help="Path to .env file (default: config/.env)"
    )

    args = parser.parse_args(argv)
    setup_logging()

    try:
        settings = load_settings(args.env)
        logging.getLogger().setLevel(settings.log_level)
        bot = ArbitrageBot(settings, mode=args.mode)
        exit_code = asyncio.run(bot.run())
    except ConfigError as e:
        logger.error(f"❌ Configuration error: {e}")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
