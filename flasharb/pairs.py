# flasharb/pairs.py
"""
Token & DEX Registry
Resolves token metadata on-chain and builds the monitored pair list
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from web3 import Web3

logger = logging.getLogger(__name__)

# =============================================================================
# ERC20 ABI (read-only surface)
# =============================================================================

ERC20_ABI = [
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "symbol",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "name",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

# =============================================================================
# WELL-KNOWN TOKENS (Polygon Mainnet)
# =============================================================================

WELL_KNOWN_TOKENS: Dict[str, str] = {
    # Stablecoins
    "DAI": "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
    "USDC": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
    "USDT": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",

    # Major tokens
    "WETH": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
    "WMATIC": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
    "WBTC": "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6",

    # DeFi tokens
    "AAVE": "0xD6DF932A45C0f255f85145f286eA0b292B21C90B",
    "LINK": "0x53E0bca35eC356BD5ddDFebbD1Fc0fD03FaBad39",
    "QUICK": "0x831753DD7087CaC61aB5644b308642cc1c33Dc13",
    "SUSHI": "0x0b3F868E0BE5597D5DB7fEB59E1CADBb0fdDa50a",
    "CRV": "0x172370d5Cd63279eFa6d502DAB29171933a610AF",
    "FRAX": "0x104592a158490a9228070E0A8e5343B499e125D0",

    # More volatile tokens
    "SAND": "0xBbba073C31bF03b8ACf7c28EF0738DeCF3695683",
    "GALA": "0x09E1943Dd2A4e82032773594f50CF54453000b97",
    "AXS": "0x61BDD9C7d4dF4Bf47A4508c0c8245505F2Af5b7b",
}

# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Token:
    address: str
    symbol: str
    decimals: int
    name: str


@dataclass(frozen=True)
class TokenPair:
    """Ordered pair: borrow `from_address`, route through `to_address`"""
    from_address: str
    to_address: str
    name: str


@dataclass(frozen=True)
class DexInfo:
    name: str
    short_name: str
    router: str
    selector: int  # Index the flash loan contract uses to pick this DEX


def build_dexes(quickswap_router: str, sushiswap_router: str) -> List[DexInfo]:
    """The two V2 routers the bot arbitrages between"""
    return [
        DexInfo("QuickSwap", "Quick", Web3.to_checksum_address(quickswap_router), 0),
        DexInfo("SushiSwap", "Sushi", Web3.to_checksum_address(sushiswap_router), 1),
    ]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_raw(token: Token, amount) -> int:
    """Human units -> on-chain integer"""
    return int(Decimal(str(amount)) * (Decimal(10) ** token.decimals))


def to_human(token: Token, raw: int) -> Decimal:
    """On-chain integer -> human units"""
    return Decimal(raw) / (Decimal(10) ** token.decimals)


# =============================================================================
# TOKEN REGISTRY
# =============================================================================

class TokenRegistry:
    """
    Address -> Token cache, filled once at startup
    """

    def __init__(self, chain):
        self.chain = chain
        self.tokens: Dict[str, Token] = {}
        self.keys: Dict[str, str] = {}  # config key (e.g. "DAI") -> address
        self.configured: Dict[str, str] = {}

    async def _load_token(self, key: str, address: str) -> Optional[Token]:
        try:
            address = Web3.to_checksum_address(address)
            contract = self.chain.contract(address, ERC20_ABI)
            decimals, symbol, name = await asyncio.gather(
                contract.functions.decimals().call(),
                contract.functions.symbol().call(),
                contract.functions.name().call(),
            )
        except Exception as e:
            logger.error(f"❌ Failed to load token {key} at {address}: {e}")
            return None

        token = Token(address=address, symbol=symbol, decimals=int(decimals), name=name)
        self.tokens[address] = token
        self.keys[key] = address
        logger.info(f"✅ Loaded token: {symbol} ({name}) - {address}")
        return token

    async def load(self, configured_tokens: Dict[str, str]) -> int:
        """
        Fetch metadata for the well-known table merged with configured tokens.
        Tokens are fetched concurrently; a failing token is skipped.
        Returns the number of tokens loaded.
        """
        all_tokens = {**WELL_KNOWN_TOKENS, **configured_tokens}
        self.configured = {k: v for k, v in all_tokens.items() if v}

        logger.info("Loading token details...")
        await asyncio.gather(*(
            self._load_token(key, address)
            for key, address in all_tokens.items()
            if address
        ))

        logger.info(f"Token cache initialized with {len(self.tokens)} tokens")
        return len(self.tokens)

    def resolve(self, address: str) -> Optional[Token]:
        try:
            return self.tokens.get(Web3.to_checksum_address(address))
        except (TypeError, ValueError):
            return None

    def resolve_key(self, key_or_address: str) -> Optional[Token]:
        """Accepts a config key (e.g. "WETH") or an address"""
        if key_or_address in self.keys:
            return self.tokens[self.keys[key_or_address]]
        return self.resolve(key_or_address)

    def build_pairs(
        self,
        base_key: str,
        explicit_pairs: List[Tuple[str, str, str]] = None,
    ) -> List[TokenPair]:
        """
        Pair the base token against every other loaded token, or use the
        explicit (from, to, name) list when one is configured.
        Pairs with an unresolved side are dropped.
        """
        pairs = []

        if explicit_pairs:
            for from_ref, to_ref, name in explicit_pairs:
                from_token = self.resolve_key(from_ref)
                to_token = self.resolve_key(to_ref)
                if not from_token or not to_token:
                    logger.warning(
                        f"⚠️ Skipping invalid pair: {name or f'{from_ref}-{to_ref}'} (missing tokens)"
                    )
                    continue
                pairs.append(TokenPair(
                    from_token.address,
                    to_token.address,
                    name or f"{from_token.symbol}/{to_token.symbol}",
                ))
            return pairs

        base = self.resolve_key(base_key)
        if not base:
            logger.error(f"{base_key} token address not found! Cannot set up pairs.")
            return pairs

        seen = {base.address}
        for key, address in self.configured.items():
            token = self.resolve(address)
            if not token:
                logger.warning(f"⚠️ Skipping invalid pair: {base_key}-{key} (missing tokens)")
                continue
            if token.address in seen:
                continue
            seen.add(token.address)
            pairs.append(TokenPair(base.address, token.address, f"{base.symbol}/{token.symbol}"))

        if not pairs:
            logger.warning("⚠️ No valid token pairs found! Check your token addresses.")

        return pairs
