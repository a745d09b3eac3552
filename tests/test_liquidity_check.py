# tests/test_liquidity_check.py

import pytest

from flasharb.filters.liquidity_check import LiquidityValidator
from flasharb.pairs import Token, TokenPair, TokenRegistry, build_dexes
from flasharb.quote_engine import QuoteEngine

from tests.conftest import DAI, QUICK_ROUTER, SUSHI_ROUTER, WETH

PAIR = TokenPair(DAI, WETH, "DAI/WETH")


@pytest.fixture
def validator(chain):
    registry = TokenRegistry(chain)
    registry.tokens[DAI] = Token(DAI, "DAI", 18, "Dai Stablecoin")
    registry.tokens[WETH] = Token(WETH, "WETH", 18, "Wrapped Ether")
    dexes = build_dexes(QUICK_ROUTER, SUSHI_ROUTER)
    return LiquidityValidator(QuoteEngine(chain), registry, dexes)


@pytest.mark.asyncio
async def test_probe_uses_small_amount(validator, quick_router):
    dai = validator.registry.resolve(DAI)
    weth = validator.registry.resolve(WETH)

    assert await validator.check_pair_liquidity(validator.dexes[0], dai, weth) is True
    assert quick_router.calls[-1] == (10 ** 17, (DAI, WETH))


@pytest.mark.asyncio
async def test_revert_means_no_liquidity(validator, quick_router):
    quick_router.failing.add((DAI, WETH))
    dai = validator.registry.resolve(DAI)
    weth = validator.registry.resolve(WETH)

    assert await validator.check_pair_liquidity(validator.dexes[0], dai, weth) is False


@pytest.mark.asyncio
async def test_zero_output_means_no_liquidity(validator, quick_router):
    quick_router.rates[(DAI, WETH)] = (0, 1)
    dai = validator.registry.resolve(DAI)
    weth = validator.registry.resolve(WETH)

    assert await validator.check_pair_liquidity(validator.dexes[0], dai, weth) is False


@pytest.mark.asyncio
async def test_pair_needs_liquidity_on_both_dexes(validator, sushi_router):
    sushi_router.failing.add((DAI, WETH))

    verified = await validator.validate_all([PAIR])

    assert verified == set()
    assert not validator.is_verified(PAIR)


@pytest.mark.asyncio
async def test_validation_is_idempotent(validator):
    first = await validator.validate_all([PAIR])
    second = await validator.validate_all([PAIR])

    assert first == second == {"DAI/WETH"}


@pytest.mark.asyncio
async def test_validation_drops_pair_that_lost_liquidity(validator, quick_router):
    await validator.validate_all([PAIR])
    quick_router.rates[(DAI, WETH)] = (0, 1)

    assert await validator.validate_all([PAIR]) == set()


@pytest.mark.asyncio
async def test_unknown_tokens_are_not_verified(validator):
    pair = TokenPair(DAI, "0x" + "33" * 20, "DAI/???")

    assert await validator.validate_all([pair]) == set()


@pytest.mark.asyncio
async def test_recheck_restores_pair(validator, sushi_router):
    await validator.validate_all([PAIR])
    validator.mark_unverified(PAIR)
    assert not validator.is_verified(PAIR)

    sushi_router.failing.add((DAI, WETH))
    assert await validator.recheck(PAIR) is False
    assert not validator.is_verified(PAIR)

    sushi_router.failing.clear()
    assert await validator.recheck(PAIR) is True
    assert validator.is_verified(PAIR)
