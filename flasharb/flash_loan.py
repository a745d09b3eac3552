# flasharb/flash_loan.py
"""
Flash Loan Arbitrage Contract Integration
Strategy data encoding and executeArbitrage submission
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

from eth_abi import decode, encode
from web3 import Web3

from flasharb.config import GAS_LIMIT_EXECUTION, SLIPPAGE_BPS

# =============================================================================
# FLASH LOAN BOT ABI
# =============================================================================

FLASH_LOAN_BOT_ABI = [
    {
        "name": "executeArbitrage",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_asset", "type": "address"},
            {"name": "_amount", "type": "uint256"},
            {"name": "_strategyData", "type": "bytes"},
            {"name": "_secretHash", "type": "bytes32"},
        ],
        "outputs": [],
    },
]

SIMPLE_TYPES = ["uint8", "address[]", "uint256[]"]
DEX_PATH_TYPES = ["uint8", "address[]", "uint256[]", "uint8[]"]


class StrategyType(IntEnum):
    SIMPLE = 1       # A -> B -> A
    MULTI_DEX = 2


@dataclass(frozen=True)
class StrategyParams:
    """What the contract enforces during the flash loan callback"""
    strategy_type: int
    path: List[str]
    min_amounts_out: List[int]
    dex_path: Optional[List[int]] = None  # DEX selector per hop


def compute_min_amounts_out(
    mid_amount: int,
    loan_amount: int,
    slippage_bps: int = SLIPPAGE_BPS,
) -> List[int]:
    """
    First hop may slip `slippage_bps` off the expected intermediate amount;
    the return hop must at least give back the loan (break even before gas).
    """
    return [mid_amount * (10000 - slippage_bps) // 10000, loan_amount]


def encode_strategy_data(params: StrategyParams) -> bytes:
    path = [Web3.to_checksum_address(a) for a in params.path]

    if params.dex_path is None:
        return encode(
            SIMPLE_TYPES,
            [int(params.strategy_type), path, list(params.min_amounts_out)],
        )

    return encode(
        DEX_PATH_TYPES,
        [int(params.strategy_type), path, list(params.min_amounts_out), list(params.dex_path)],
    )


def decode_strategy_data(data: bytes, with_dex_path: bool = False) -> StrategyParams:
    """Inverse of encode_strategy_data"""
    if with_dex_path:
        strategy_type, path, min_amounts, dex_path = decode(DEX_PATH_TYPES, data)
        dex_path = list(dex_path)
    else:
        strategy_type, path, min_amounts = decode(SIMPLE_TYPES, data)
        dex_path = None

    return StrategyParams(
        strategy_type=strategy_type,
        path=[Web3.to_checksum_address(a) for a in path],
        min_amounts_out=list(min_amounts),
        dex_path=dex_path,
    )


def strategy_hash(strategy_data: bytes) -> bytes:
    """keccak256 commitment the contract checks against the strategy data"""
    return bytes(Web3.keccak(strategy_data))


class FlashLoanBot:
    """
    The deployed flash loan receiver, reached through its ABI
    """

    def __init__(self, chain, address: str):
        self.chain = chain
        self.address = Web3.to_checksum_address(address)
        self.contract = chain.contract(self.address, FLASH_LOAN_BOT_ABI)

    async def execute_arbitrage(
        self,
        asset: str,
        amount: int,
        strategy_data: bytes,
        secret_hash: bytes,
        gas_price: int,
        gas_limit: int = GAS_LIMIT_EXECUTION,
    ) -> str:
        """Submit executeArbitrage; returns the tx hash"""
        fn = self.contract.functions.executeArbitrage(
            Web3.to_checksum_address(asset),
            amount,
            strategy_data,
            secret_hash,
        )
        return await self.chain.send_contract_transaction(fn, gas=gas_limit, gas_price=gas_price)

    async def wait_for_receipt(self, tx_hash: str):
        return await self.chain.wait_for_receipt(tx_hash)
