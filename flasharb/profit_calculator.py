# flasharb/profit_calculator.py
"""
Profit Calculator
Round-trip gross profit, USD conversion and net profit after gas.
Amounts stay raw integers until the USD conversion.
"""

from dataclasses import dataclass
from decimal import Decimal

from flasharb.config import GAS_LIMIT_ESTIMATE
from flasharb.gas import estimate_gas_cost_usd
from flasharb.pairs import Token, to_human
from flasharb.price_oracle import PriceOracle


@dataclass(frozen=True)
class ProfitBreakdown:
    """Profit of one candidate round trip"""
    loan_amount: int
    final_amount: int
    gross_profit: int            # raw, in loan token units
    gross_profit_usd: Decimal
    gas_cost_usd: Decimal
    net_profit_usd: Decimal
    profit_bps: int

    @property
    def is_positive(self) -> bool:
        return self.net_profit_usd > 0


def price_divergence_pct(amount_a: int, amount_b: int) -> Decimal:
    """
    |higher / lower - 1| * 100, comparing raw on-chain amounts
    so no precision is lost to formatting.
    """
    higher, lower = (amount_a, amount_b) if amount_a > amount_b else (amount_b, amount_a)
    if lower <= 0:
        raise ValueError("cannot compare against a zero quote")
    return (Decimal(higher) / Decimal(lower) - 1) * 100


class ProfitCalculator:

    def __init__(self, oracle: PriceOracle, gas_units: int = GAS_LIMIT_ESTIMATE):
        self.oracle = oracle
        self.gas_units = gas_units

    async def gas_cost_usd(self, gas_price_wei: int) -> Decimal:
        return estimate_gas_cost_usd(
            gas_price_wei=gas_price_wei,
            native_price_usd=await self.oracle.native_price_usd(),
            gas_units=self.gas_units,
        )

    async def evaluate(
        self,
        token: Token,
        loan_amount: int,
        final_amount: int,
        gas_price_wei: int,
        gas_cost_usd: Decimal = None,
    ) -> ProfitBreakdown:
        gross_profit = final_amount - loan_amount
        token_price = await self.oracle.token_price_usd(token)
        gross_profit_usd = to_human(token, gross_profit) * token_price
        if gas_cost_usd is None:
            gas_cost_usd = await self.gas_cost_usd(gas_price_wei)

        return ProfitBreakdown(
            loan_amount=loan_amount,
            final_amount=final_amount,
            gross_profit=gross_profit,
            gross_profit_usd=gross_profit_usd,
            gas_cost_usd=gas_cost_usd,
            net_profit_usd=gross_profit_usd - gas_cost_usd,
            profit_bps=(gross_profit * 10000) // loan_amount if loan_amount > 0 else 0,
        )
