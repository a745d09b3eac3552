# flasharb/gas.py

from decimal import Decimal

from flasharb.config import GAS_LIMIT_ESTIMATE

WEI_PER_NATIVE = Decimal(10) ** 18


def estimate_gas_cost_usd(
    *,
    gas_price_wei: int,
    native_price_usd: Decimal,
    gas_units: int = GAS_LIMIT_ESTIMATE,
) -> Decimal:

    gas_cost_native = Decimal(gas_units) * Decimal(gas_price_wei) / WEI_PER_NATIVE
    return gas_cost_native * Decimal(native_price_usd)


def gwei(gas_price_wei: int) -> Decimal:
    return Decimal(gas_price_wei) / Decimal(10 ** 9)
