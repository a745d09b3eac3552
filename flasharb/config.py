# flasharb/config.py
"""
Arbitrage Bot Configuration
Tunable constants plus .env-driven settings for the flash loan detector
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_ENV_PATH = BASE_DIR / "config" / ".env"


class ConfigError(RuntimeError):
    """Missing or malformed configuration - fatal at startup"""


# -----------------------------
# Chain Configuration
# -----------------------------
CHAIN_ID_POLYGON = 137
CHAIN_ID_AMOY = 80002

# -----------------------------
# Gas Configuration
# -----------------------------
GAS_LIMIT_ESTIMATE = 700_000      # Observed flash loan arbitrage usage, for profit estimates
GAS_LIMIT_EXECUTION = 4_000_000   # Hard limit sent with executeArbitrage
FALLBACK_GAS_PRICE_GWEI = 50
NATIVE_PRICE_USD = Decimal("0.5")  # MATIC/POL

# -----------------------------
# Trading Parameters
# -----------------------------
SLIPPAGE_BPS = 200                 # 2% off the expected intermediate amount
TRADE_SIZES = (1, 10, 100, 1000)   # Loan sizes tried, in whole base tokens
PROBE_AMOUNT = "0.1"               # Liquidity probe size
REFERENCE_AMOUNT = "1"             # Price comparison size

DEFAULT_MIN_PROFIT_USD = "0.5"
DEFAULT_PRICE_DIFFERENCE_THRESHOLD = "0.1"  # percent
DEFAULT_BASE_TOKEN = "DAI"
PRICE_ORACLES = ("fixed", "chainlink")

# -----------------------------
# Scheduling
# -----------------------------
DEFAULT_MONITOR_INTERVAL_MS = 2000
DEFAULT_CHECK_DELAY_MS = 200
RECHECK_DELAY_SECONDS = 60
RECEIPT_TIMEOUT_SECONDS = 300

# -----------------------------
# Status Table
# -----------------------------
TABLE_REFRESH_SECONDS = 3.0
TABLE_FORCE_EVERY_BLOCKS = 5

# -----------------------------
# Default token addresses (Polygon mainnet)
# -----------------------------
MAINNET_TOKEN_DEFAULTS = {
    "DAI": "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
    "USDC": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
    "USDT": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
    "WETH": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
    "WMATIC": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
}


@dataclass(frozen=True)
class NetworkConfig:
    """Addresses resolved for the connected chain"""
    name: str
    chain_id: int
    flash_loan_contract: str
    quickswap_router: str
    sushiswap_router: str
    tokens: Dict[str, str]


@dataclass
class Settings:
    """Values read from the environment"""
    rpc_url: str
    private_key: str
    min_profit_usd: Decimal
    price_difference_threshold: Decimal
    monitor_interval: float      # seconds
    check_delay: float           # seconds
    base_token: str = DEFAULT_BASE_TOKEN
    token_pairs: List[Tuple[str, str, str]] = field(default_factory=list)
    use_dex_path: bool = False
    price_oracle: str = "fixed"  # fixed | chainlink
    log_level: str = "INFO"

    def network_for(self, chain_id: int) -> NetworkConfig:
        """
        Resolve contract, router and token addresses for a chain.
        Amoy reads the *_AMOY variables, anything else the mainnet ones.
        """
        is_amoy = chain_id == CHAIN_ID_AMOY
        suffix = "_AMOY" if is_amoy else "_MAINNET"

        flash_loan = (
            os.getenv(f"ADVANCED_ARBITRAGE_BOT_ADDRESS{suffix}")
            or os.getenv(f"ARBITRAGE_FLASH_LOAN_ADDRESS{suffix}")
        )
        if not flash_loan:
            raise ConfigError(
                f"No flash loan contract address set for "
                f"{'Amoy Testnet' if is_amoy else 'Polygon Mainnet'} "
                f"(ADVANCED_ARBITRAGE_BOT_ADDRESS{suffix})"
            )

        router_suffix = "_AMOY" if is_amoy else ""
        quickswap = os.getenv(f"QUICKSWAP_ROUTER{router_suffix}")
        sushiswap = os.getenv(f"SUSHISWAP_ROUTER{router_suffix}")
        if not quickswap:
            raise ConfigError(f"QUICKSWAP_ROUTER{router_suffix} not set in .env")
        if not sushiswap:
            raise ConfigError(f"SUSHISWAP_ROUTER{router_suffix} not set in .env")

        tokens = {}
        for key, default in MAINNET_TOKEN_DEFAULTS.items():
            if is_amoy:
                address = os.getenv(f"{key}_AMOY")
            else:
                address = os.getenv(key) or default
            if address:
                tokens[key] = address

        return NetworkConfig(
            name="Amoy Testnet" if is_amoy else "Polygon Mainnet",
            chain_id=chain_id,
            flash_loan_contract=flash_loan,
            quickswap_router=quickswap,
            sushiswap_router=sushiswap,
            tokens=tokens,
        )


def _decimal_env(name: str, default: str) -> Decimal:
    raw = os.getenv(name) or default
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _bool_env(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def _choice_env(name: str, choices: Tuple[str, ...]) -> str:
    value = (os.getenv(name) or choices[0]).strip().lower()
    if value not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)}, got {value!r}")
    return value


def parse_token_pairs(pairs: str, names: str = "") -> List[Tuple[str, str, str]]:
    """
    Parse TOKEN_PAIRS ("from:to,from:to") with optional TOKEN_PAIR_NAMES.
    Returns [(from, to, name)], name "" when none was given;
    entries without both sides are ignored.
    """
    result = []
    pair_names = [n.strip() for n in names.split(",")] if names else []

    for i, entry in enumerate(pairs.split(",")):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            continue
        name = pair_names[i] if i < len(pair_names) else ""
        result.append((parts[0].strip(), parts[1].strip(), name))

    return result


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """
    Load .env (config/.env unless a path is given) and validate it.
    Raises ConfigError when a mandatory value is missing.
    """
    path = Path(env_path) if env_path else DEFAULT_ENV_PATH
    if env_path and not path.exists():
        raise ConfigError(f".env file not found at {path}")
    if path.exists():
        load_dotenv(path)

    rpc_url = os.getenv("POLYGON_MAINNET_RPC_URL") or os.getenv("RPC_URL")
    if not rpc_url:
        raise ConfigError("POLYGON_MAINNET_RPC_URL not set in .env")

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ConfigError("PRIVATE_KEY not set in .env")
    if not private_key.startswith("0x"):
        private_key = f"0x{private_key}"

    return Settings(
        rpc_url=rpc_url,
        private_key=private_key,
        min_profit_usd=_decimal_env("MIN_PROFIT_USD", DEFAULT_MIN_PROFIT_USD),
        price_difference_threshold=_decimal_env(
            "PRICE_DIFFERENCE_THRESHOLD", DEFAULT_PRICE_DIFFERENCE_THRESHOLD
        ),
        monitor_interval=_int_env("MONITOR_INTERVAL_MS", DEFAULT_MONITOR_INTERVAL_MS) / 1000,
        check_delay=_int_env("CHECK_DELAY_MS", DEFAULT_CHECK_DELAY_MS) / 1000,
        base_token=os.getenv("BASE_TOKEN") or DEFAULT_BASE_TOKEN,
        token_pairs=parse_token_pairs(
            os.getenv("TOKEN_PAIRS") or "", os.getenv("TOKEN_PAIR_NAMES") or ""
        ),
        use_dex_path=_bool_env("STRATEGY_DEX_PATH"),
        price_oracle=_choice_env("PRICE_ORACLE", PRICE_ORACLES),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
