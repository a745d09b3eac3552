# flasharb/__init__.py
"""
Polygon Flash Loan Arbitrage Bot
Cross-DEX (QuickSwap / SushiSwap) price divergence detection with flash loan execution

Modules:
- config: Configuration and environment
- chain_client: Async JSON-RPC client
- pairs: Token registry and DEX definitions
- filters.liquidity_check: Pair liquidity validation
- quote_engine: Router quotes
- price_oracle: USD prices for profit conversion
- profit_calculator: Profit and gas cost
- work_queue: Rate-limited pair checks
- flash_loan: Strategy encoding and flash loan contract
- executor: Execution gate and engine
- status: Status table
- arbitrage_scanner: Opportunity detection
- main: Entry point
"""

__version__ = "1.0.0"

from flasharb.config import ConfigError, Settings, load_settings
from flasharb.pairs import WELL_KNOWN_TOKENS, DexInfo, Token, TokenPair

__all__ = [
    "ConfigError",
    "Settings",
    "load_settings",
    "WELL_KNOWN_TOKENS",
    "DexInfo",
    "Token",
    "TokenPair",
]
