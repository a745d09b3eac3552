# tests/test_profit_calculator.py

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from flasharb.gas import estimate_gas_cost_usd, gwei
from flasharb.pairs import Token
from flasharb.price_oracle import ChainlinkPriceOracle, FixedPriceOracle
from flasharb.profit_calculator import ProfitCalculator, price_divergence_pct

from tests.conftest import DAI, ONE, WETH, FakeChain, _Call

DAI_TOKEN = Token(DAI, "DAI", 18, "Dai Stablecoin")
WETH_TOKEN = Token(WETH, "WETH", 18, "Wrapped Ether")


def test_gas_cost_formula():
    # 700k gas * 50 gwei = 0.035 MATIC at $0.5
    cost = estimate_gas_cost_usd(gas_price_wei=50 * 10 ** 9, native_price_usd=Decimal("0.5"))

    assert cost == Decimal("0.0175")
    assert gwei(50 * 10 ** 9) == 50


def test_divergence_is_symmetric_and_exact():
    assert price_divergence_pct(1010, 1000) == Decimal(1)
    assert price_divergence_pct(1000, 1010) == Decimal(1)
    assert price_divergence_pct(5, 5) == 0


def test_divergence_against_zero_quote():
    with pytest.raises(ValueError):
        price_divergence_pct(100, 0)


@pytest.mark.asyncio
async def test_net_is_gross_minus_gas():
    calc = ProfitCalculator(FixedPriceOracle())

    result = await calc.evaluate(DAI_TOKEN, 100 * ONE, 101 * ONE, 50 * 10 ** 9)

    assert result.gross_profit == ONE
    assert result.gross_profit_usd == Decimal(1)
    assert result.gas_cost_usd == Decimal("0.0175")
    assert result.net_profit_usd == result.gross_profit_usd - result.gas_cost_usd
    assert result.profit_bps == 100
    assert result.is_positive


@pytest.mark.asyncio
async def test_non_stable_profit_uses_reference_price():
    calc = ProfitCalculator(FixedPriceOracle())

    result = await calc.evaluate(WETH_TOKEN, ONE, ONE + ONE // 1000, 0)

    assert result.gross_profit_usd == Decimal(2)
    assert result.net_profit_usd == Decimal(2)


@pytest.mark.asyncio
async def test_fixed_oracle_table():
    oracle = FixedPriceOracle()

    def price(symbol):
        return oracle.price_for_symbol(symbol)

    assert price("USDC.e") == 1
    assert price("WETH") == 2000
    assert price("WPOL") == Decimal("0.5")
    assert price("WBTC") == 30000
    assert price("SAND") == 1
    assert await oracle.native_price_usd() == Decimal("0.5")


def _feed(answer, decimals=8):
    feed = MagicMock()
    feed.functions.latestRoundData.return_value = _Call(lambda: (1, answer, 0, 0, 1))
    feed.functions.decimals.return_value = _Call(lambda: decimals)
    return feed


@pytest.mark.asyncio
async def test_chainlink_oracle_reads_feed_and_caches():
    chain = FakeChain()
    chain.contract = MagicMock(return_value=_feed(250_000_000_000))
    oracle = ChainlinkPriceOracle(chain)

    assert await oracle.token_price_usd(WETH_TOKEN) == Decimal(2500)
    assert await oracle.token_price_usd(WETH_TOKEN) == Decimal(2500)
    assert chain.contract.call_count == 1
    assert await oracle.token_price_usd(DAI_TOKEN) == 1


@pytest.mark.asyncio
async def test_chainlink_oracle_falls_back_on_error():
    def broken():
        raise Exception("feed down")

    feed = MagicMock()
    feed.functions.latestRoundData.return_value = _Call(broken)
    chain = FakeChain()
    chain.contract = MagicMock(return_value=feed)
    oracle = ChainlinkPriceOracle(chain)

    assert await oracle.native_price_usd() == Decimal("0.5")
    assert await oracle.token_price_usd(Token("0x" + "44" * 20, "SAND", 18, "Sand")) == 1
