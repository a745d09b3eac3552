# flasharb/executor.py
"""
Flash Loan Execution Engine
Submits one arbitrage at a time through the flash loan contract
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from flasharb.flash_loan import (
    FlashLoanBot,
    StrategyParams,
    StrategyType,
    compute_min_amounts_out,
    encode_strategy_data,
    strategy_hash,
)
from flasharb.pairs import ERC20_ABI, to_human
from flasharb.status import PairState

logger = logging.getLogger(__name__)

EXPLORER_TX_URL = "https://polygonscan.com/tx/"


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class ExecutionStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"      # mined but reverted
    ERROR = "error"        # never got a receipt


@dataclass(frozen=True)
class ExecutionRecord:
    """One entry of the append-only execution history"""
    timestamp: float
    block_number: int
    tx_hash: Optional[str]
    pair: str
    route: str
    amount: Decimal            # loan, in whole tokens
    profit: Decimal            # expected gross, in whole tokens
    profit_usd: Decimal        # expected net
    gas_used: int
    status: ExecutionStatus
    error: str = ""


class ExecutionGate:
    """
    At most one flash loan in flight.
    Check-and-set is atomic on a single event loop.
    """

    def __init__(self):
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def try_acquire(self) -> bool:
        if self._locked:
            return False
        self._locked = True
        return True

    def release(self):
        self._locked = False


# =============================================================================
# EXECUTION ENGINE
# =============================================================================

class ExecutionEngine:
    """
    Encodes the strategy, submits executeArbitrage and records the outcome.
    No retries: a failed opportunity is simply re-detected on a later block.
    """

    def __init__(
        self,
        bot: FlashLoanBot,
        gate: ExecutionGate,
        reporter=None,
        chain=None,
        use_dex_path: bool = False,
    ):
        self.bot = bot
        self.gate = gate
        self.reporter = reporter
        self.chain = chain
        self.use_dex_path = use_dex_path
        self.history: List[ExecutionRecord] = []

    def build_strategy(self, opportunity) -> StrategyParams:
        from_token = opportunity.from_token
        to_token = opportunity.to_token

        dex_path = None
        if self.use_dex_path:
            dex_path = [opportunity.buy_dex.selector, opportunity.sell_dex.selector]

        return StrategyParams(
            strategy_type=StrategyType.SIMPLE,
            path=[from_token.address, to_token.address],
            min_amounts_out=compute_min_amounts_out(
                opportunity.mid_amount, opportunity.loan_amount
            ),
            dex_path=dex_path,
        )

    def _set_state(self, pair: str, state: PairState, profit_usd: Decimal = None):
        if self.reporter is None:
            return
        self.reporter.set_state(pair, state, profit_usd)
        self.reporter.render(force=True)

    async def execute_opportunity(self, opportunity, block_number: int) -> Optional[ExecutionRecord]:
        """
        Run one opportunity through the flash loan contract.
        Returns None when another execution holds the gate.
        """
        opp_id = opportunity.id

        if not self.gate.try_acquire():
            logger.info(f"[{opp_id}] Already executing a trade, skipping...")
            return None

        from_token = opportunity.from_token
        pair = opportunity.pair_name
        route = f"{opportunity.buy_dex.name} -> {opportunity.sell_dex.name}"
        breakdown = opportunity.profit

        tx_hash = None
        gas_used = 0
        status = ExecutionStatus.ERROR
        error = ""

        try:
            self._set_state(pair, PairState.EXECUTING)

            logger.info(f"[{opp_id}] 🚀 Executing {pair} arbitrage:")
            logger.info(f"  Loan amount: {to_human(from_token, opportunity.loan_amount)} {from_token.symbol}")
            logger.info(f"  Route: {route}")
            logger.info(
                f"  Expected profit: ${breakdown.net_profit_usd:.4f} "
                f"(gas cost: ${breakdown.gas_cost_usd:.2f})"
            )
            logger.info(
                f"  Expected intermediate amount: "
                f"{to_human(opportunity.to_token, opportunity.mid_amount)} {opportunity.to_token.symbol}"
            )

            strategy_data = encode_strategy_data(self.build_strategy(opportunity))
            secret_hash = strategy_hash(strategy_data)

            tx_hash = await self.bot.execute_arbitrage(
                from_token.address,
                opportunity.loan_amount,
                strategy_data,
                secret_hash,
                gas_price=opportunity.gas_price,
            )
            logger.info(f"[{opp_id}] Transaction sent: {tx_hash}")
            logger.info(f"[{opp_id}] Monitor at: {EXPLORER_TX_URL}{tx_hash}")

            receipt = await self.bot.wait_for_receipt(tx_hash)
            gas_used = receipt.get("gasUsed", 0)

            if receipt.get("status") == 1:
                status = ExecutionStatus.SUCCESS
                logger.info(f"[{opp_id}] ✅ Arbitrage executed successfully! Gas used: {gas_used}")
            else:
                status = ExecutionStatus.FAILED
                error = "transaction reverted"
                logger.warning(f"[{opp_id}] ❌ Arbitrage execution failed (reverted)")

        except Exception as e:
            status = ExecutionStatus.ERROR
            error = str(e)
            logger.error(f"[{opp_id}] ❌ Error executing arbitrage: {e}")

        finally:
            record = ExecutionRecord(
                timestamp=time.time(),
                block_number=block_number,
                tx_hash=tx_hash,
                pair=pair,
                route=route,
                amount=to_human(from_token, opportunity.loan_amount),
                profit=to_human(from_token, breakdown.gross_profit),
                profit_usd=breakdown.net_profit_usd,
                gas_used=gas_used,
                status=status,
                error=error,
            )
            self.history.append(record)
            self.gate.release()

        if status == ExecutionStatus.SUCCESS:
            await self._log_contract_balance(from_token)
            self._set_state(pair, PairState.SUCCESS, breakdown.net_profit_usd)
        elif status == ExecutionStatus.FAILED:
            self._set_state(pair, PairState.FAILED)
        else:
            self._set_state(pair, PairState.ERROR)

        return record

    async def _log_contract_balance(self, token):
        """Contract balance after a successful loan; informational only"""
        if self.chain is None:
            return
        try:
            erc20 = self.chain.contract(token.address, ERC20_ABI)
            balance = await erc20.functions.balanceOf(self.bot.address).call()
            logger.info(f"  Contract {token.symbol} balance: {to_human(token, balance)}")
        except Exception as e:
            logger.warning(f"Could not read contract {token.symbol} balance: {e}")

    def get_statistics(self) -> dict:
        total = len(self.history)
        successful = sum(1 for r in self.history if r.status == ExecutionStatus.SUCCESS)
        return {
            "total_executions": total,
            "successful": successful,
            "failed": total - successful,
            "success_rate": successful / total * 100 if total > 0 else 0,
        }
