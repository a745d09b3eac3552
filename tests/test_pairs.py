# tests/test_pairs.py

from decimal import Decimal

import pytest

from flasharb.config import parse_token_pairs
from flasharb.pairs import WELL_KNOWN_TOKENS, Token, TokenRegistry, build_dexes, to_human, to_raw

from tests.conftest import DAI, QUICK_ROUTER, SUSHI_ROUTER, USDC, WETH, FakeChain, FakeToken


@pytest.fixture
def token_chain():
    chain = FakeChain()
    chain.add_token(DAI, FakeToken("DAI", 18, "Dai Stablecoin"))
    chain.add_token(WETH, FakeToken("WETH", 18, "Wrapped Ether"))
    chain.add_token(USDC, FakeToken("USDC", 6, "USD Coin"))
    return chain


def test_fixed_point_helpers():
    usdc = Token(USDC, "USDC", 6, "USD Coin")

    assert to_raw(usdc, "0.1") == 100_000
    assert to_raw(usdc, 1000) == 1_000_000_000
    assert to_human(usdc, 1_500_000) == Decimal("1.5")


def test_dex_selectors():
    quick, sushi = build_dexes(QUICK_ROUTER.lower(), SUSHI_ROUTER)

    assert (quick.name, quick.short_name, quick.selector) == ("QuickSwap", "Quick", 0)
    assert (sushi.name, sushi.short_name, sushi.selector) == ("SushiSwap", "Sushi", 1)
    assert quick.router == QUICK_ROUTER


@pytest.mark.asyncio
async def test_load_skips_failing_tokens(token_chain):
    token_chain.add_token(WELL_KNOWN_TOKENS["LINK"], FakeToken("LINK", broken=True))
    registry = TokenRegistry(token_chain)

    loaded = await registry.load({"DAI": DAI, "WETH": WETH})

    # Only the three fake tokens answer; every other address fails and is skipped
    assert loaded == 3
    assert registry.resolve(DAI).symbol == "DAI"
    assert registry.resolve(USDC).decimals == 6
    assert registry.resolve(WELL_KNOWN_TOKENS["LINK"]) is None


@pytest.mark.asyncio
async def test_load_skips_invalid_address(token_chain):
    registry = TokenRegistry(token_chain)

    await registry.load({"BOGUS": "not-an-address"})

    assert registry.resolve_key("BOGUS") is None
    assert registry.resolve("not-an-address") is None


@pytest.mark.asyncio
async def test_build_pairs_against_base_token(token_chain):
    registry = TokenRegistry(token_chain)
    await registry.load({"DAI": DAI, "WETH": WETH})

    pairs = registry.build_pairs("DAI")

    assert [p.name for p in pairs] == ["DAI/USDC", "DAI/WETH"]
    assert all(p.from_address == DAI for p in pairs)


@pytest.mark.asyncio
async def test_build_pairs_from_explicit_list(token_chain):
    registry = TokenRegistry(token_chain)
    await registry.load({})

    pairs = registry.build_pairs("DAI", [
        ("WETH", "USDC", "weth-usdc"),
        ("WETH", "WBTC", "unresolved"),
        (DAI, WETH, ""),
    ])

    assert [(p.name, p.from_address, p.to_address) for p in pairs] == [
        ("weth-usdc", WETH, USDC),
        ("DAI/WETH", DAI, WETH),
    ]


@pytest.mark.asyncio
async def test_configured_pair_names_key_the_pairs(token_chain):
    registry = TokenRegistry(token_chain)
    await registry.load({})

    pairs = registry.build_pairs(
        "DAI", parse_token_pairs("DAI:WETH,DAI:WETH", "My-Pair,Other-Pair")
    )

    assert [p.name for p in pairs] == ["My-Pair", "Other-Pair"]
    assert all((p.from_address, p.to_address) == (DAI, WETH) for p in pairs)


@pytest.mark.asyncio
async def test_missing_base_token_yields_no_pairs(token_chain):
    registry = TokenRegistry(token_chain)
    await registry.load({})

    assert registry.build_pairs("FRAX") == []
