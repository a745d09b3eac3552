# tests/conftest.py

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3 import Web3

from flasharb.config import NetworkConfig

DAI = "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063"
USDC = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
WETH = "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619"
QUICK_ROUTER = "0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff"
SUSHI_ROUTER = "0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506"
FLASH_LOAN = "0x000000000000000000000000000000000000dEaD"
WALLET = "0x0000000000000000000000000000000000000001"

GAS_PRICE = 30 * 10 ** 9
ONE = 10 ** 18

ENV_NAMES = [
    "POLYGON_MAINNET_RPC_URL", "RPC_URL", "PRIVATE_KEY",
    "MIN_PROFIT_USD", "PRICE_DIFFERENCE_THRESHOLD", "MONITOR_INTERVAL_MS",
    "CHECK_DELAY_MS", "BASE_TOKEN", "TOKEN_PAIRS", "TOKEN_PAIR_NAMES",
    "STRATEGY_DEX_PATH", "PRICE_ORACLE", "LOG_LEVEL",
    "ADVANCED_ARBITRAGE_BOT_ADDRESS_MAINNET", "ARBITRAGE_FLASH_LOAN_ADDRESS_MAINNET",
    "ADVANCED_ARBITRAGE_BOT_ADDRESS_AMOY", "ARBITRAGE_FLASH_LOAN_ADDRESS_AMOY",
    "QUICKSWAP_ROUTER", "SUSHISWAP_ROUTER", "QUICKSWAP_ROUTER_AMOY", "SUSHISWAP_ROUTER_AMOY",
    "DAI", "USDC", "USDT", "WETH", "WMATIC",
    "DAI_AMOY", "USDC_AMOY", "USDT_AMOY", "WETH_AMOY", "WMATIC_AMOY",
]


# =============================================================================
# FAKE CONTRACTS
# =============================================================================

class _Call:
    """Stands in for a web3 ContractFunction: `.call()` is awaitable"""

    def __init__(self, fn):
        self._fn = fn

    async def call(self):
        return self._fn()


class FakeToken:
    def __init__(self, symbol, decimals=18, name=None, balance=0, broken=False):
        self._symbol = symbol
        self._decimals = decimals
        self._name = name or symbol
        self.balance = balance
        self.broken = broken
        self.functions = self

    def _value(self, value):
        def fn():
            if self.broken:
                raise Exception("execution reverted")
            return value
        return _Call(fn)

    def decimals(self):
        return self._value(self._decimals)

    def symbol(self):
        return self._value(self._symbol)

    def name(self):
        return self._value(self._name)

    def balanceOf(self, owner):
        return self._value(self.balance)


class FakeRouter:
    """
    getAmountsOut from a rate table: (from, to) -> (numerator, denominator).
    Unknown or failing paths revert.
    """

    def __init__(self, rates=None):
        self.rates = dict(rates or {})
        self.failing = set()
        self.calls = []
        self.functions = self

    def getAmountsOut(self, amount_in, path):
        def fn():
            key = (path[0], path[1])
            self.calls.append((amount_in, key))
            if key in self.failing or key not in self.rates:
                raise Exception("execution reverted")
            num, den = self.rates[key]
            return [amount_in, amount_in * num // den]
        return _Call(fn)


class FakeChain:
    """Enough of ChainClient for the detector, registry and executor"""

    def __init__(self):
        self.address = WALLET
        self.tokens = {}
        self.routers = {}
        self.contracts = {}
        self.send_contract_transaction = AsyncMock(return_value="0xfeed")
        self.wait_for_receipt = AsyncMock(return_value={"status": 1, "gasUsed": 512_000})

    def add_token(self, address, token):
        self.tokens[Web3.to_checksum_address(address)] = token
        return token

    def add_router(self, address, router):
        self.routers[Web3.to_checksum_address(address)] = router
        return router

    def contract(self, address, abi):
        address = Web3.to_checksum_address(address)
        if address in self.tokens:
            return self.tokens[address]
        if address in self.routers:
            return self.routers[address]
        return self.contracts.setdefault(address, MagicMock())


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Unset every variable the settings loader reads; restored afterwards"""
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def network():
    return NetworkConfig(
        name="Polygon Mainnet",
        chain_id=137,
        flash_loan_contract=FLASH_LOAN,
        quickswap_router=QUICK_ROUTER,
        sushiswap_router=SUSHI_ROUTER,
        tokens={"DAI": DAI, "WETH": WETH},
    )


@pytest.fixture
def quick_router():
    # 1 DAI -> 0.0005 WETH, 1 WETH -> 2000 DAI
    return FakeRouter({(DAI, WETH): (1, 2000), (WETH, DAI): (2000, 1)})


@pytest.fixture
def sushi_router():
    # Same prices until a test moves them
    return FakeRouter({(DAI, WETH): (1, 2000), (WETH, DAI): (2000, 1)})


@pytest.fixture
def chain(quick_router, sushi_router):
    chain = FakeChain()
    chain.add_token(DAI, FakeToken("DAI", name="Dai Stablecoin"))
    chain.add_token(WETH, FakeToken("WETH", name="Wrapped Ether"))
    chain.add_router(QUICK_ROUTER, quick_router)
    chain.add_router(SUSHI_ROUTER, sushi_router)
    return chain


@pytest.fixture
def make_detector(chain, network):
    from flasharb.arbitrage_scanner import ArbitrageDetector

    def factory(**overrides):
        options = dict(
            min_profit_usd=Decimal("0.5"),
            price_difference_threshold=Decimal("0.1"),
            check_delay=0,
            base_token="DAI",
            execute=True,
            recheck_delay=0.01,
        )
        options.update(overrides)
        return ArbitrageDetector(chain, network, **options)

    return factory
