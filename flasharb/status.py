# flasharb/status.py
"""
Live status table of monitored pairs
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence

from flasharb.config import TABLE_REFRESH_SECONDS
from flasharb.gas import gwei

logger = logging.getLogger(__name__)


class PairState(Enum):
    VERIFIED = "Valid Pair"
    NO_ARB = "No Arb"
    ANALYZING = "Analyzing..."
    NOT_PROFITABLE = "Not Profitable"
    LOW_PROFIT = "Low Profit"
    PROFITABLE = "Profitable"
    EXECUTING = "Executing..."
    SUCCESS = "Success"
    FAILED = "Failed"
    ERROR = "Error"
    REMOVED = "Error - Removed"
    RECHECKED = "Verified"


# States that carry a dollar amount in the table
_PROFIT_STATES = {PairState.LOW_PROFIT, PairState.PROFITABLE, PairState.SUCCESS}


@dataclass
class StatusRow:
    """Latest snapshot of one pair; presentation only"""
    state: PairState = PairState.VERIFIED
    prices: Dict[str, Decimal] = field(default_factory=dict)  # DEX short name -> amount out
    diff_pct: Optional[Decimal] = None
    direction: Optional[str] = None
    gas_cost_usd: Optional[Decimal] = None
    profit_usd: Optional[Decimal] = None

    def status_text(self) -> str:
        if self.state in _PROFIT_STATES and self.profit_usd is not None:
            return f"{self.state.value} ${self.profit_usd:.4f}"
        return self.state.value


def _fmt_price(value: Optional[Decimal]) -> str:
    if value is None:
        return "N/A"
    return f"{value:.8f}"[:8]


class StatusReporter:
    """
    Pair name -> StatusRow, rendered on a throttle
    """

    COLUMN_WIDTH = 14

    def __init__(
        self,
        dex_names: Sequence[str],
        min_profit_usd: Decimal = Decimal(0),
        refresh_seconds: float = TABLE_REFRESH_SECONDS,
    ):
        self.dex_names = list(dex_names)
        self.min_profit_usd = min_profit_usd
        self.refresh_seconds = refresh_seconds
        self.rows: Dict[str, StatusRow] = {}
        self.block_number = 0
        self.gas_price = 0
        self._last_render = float("-inf")

    def set_block(self, block_number: int, gas_price: int):
        self.block_number = block_number
        self.gas_price = gas_price

    def update(self, name: str, **fields) -> StatusRow:
        """Replace the given fields of a pair's row, creating it if needed"""
        row = replace(self.rows.get(name, StatusRow()), **fields)
        self.rows[name] = row
        return row

    def set_state(self, name: str, state: PairState, profit_usd: Decimal = None) -> StatusRow:
        return self.update(name, state=state, profit_usd=profit_usd)

    def reset(self, name: str, state: PairState):
        self.rows[name] = StatusRow(state=state)

    @property
    def profitable_count(self) -> int:
        return sum(1 for row in self.rows.values() if row.state == PairState.PROFITABLE)

    def sorted_names(self) -> List[str]:
        """Profitable pairs first, then by divergence, highest first"""
        def key(name):
            row = self.rows[name]
            diff = row.diff_pct if row.diff_pct is not None else Decimal(0)
            return (row.state != PairState.PROFITABLE, -diff)

        return sorted(self.rows, key=key)

    def format_table(self) -> str:
        width = self.COLUMN_WIDTH
        headers = (
            ["PAIR"]
            + [f"{name.upper()} PRICE" for name in self.dex_names]
            + ["DIFF %", "DIRECTION", "GAS COST($)", "STATUS"]
        )
        rule = "=" * (width + 2) * len(headers)

        lines = [
            rule,
            f"📊 ARBITRAGE MONITOR - Block: {self.block_number} - "
            f"Gas: {gwei(self.gas_price):.2f} gwei - {datetime.now().strftime('%H:%M:%S')}",
            rule,
            "| ".join(h.ljust(width) for h in headers),
            "-" * len(rule),
        ]

        for name in self.sorted_names():
            row = self.rows[name]
            cells = (
                [name]
                + [_fmt_price(row.prices.get(dex)) for dex in self.dex_names]
                + [
                    f"{row.diff_pct:.4f}%" if row.diff_pct is not None else "N/A",
                    row.direction or "N/A",
                    f"${row.gas_cost_usd:.2f}" if row.gas_cost_usd is not None else "N/A",
                    row.status_text(),
                ]
            )
            lines.append("| ".join(str(c).ljust(width) for c in cells))

        if not self.rows:
            lines.append("No valid pairs found - check token addresses and liquidity")

        lines.append("-" * len(rule))
        if self.profitable_count > 0:
            lines.append(
                f"🔍 Found {self.profitable_count} profitable opportunities "
                f"above threshold (${self.min_profit_usd})"
            )
        else:
            lines.append("No profitable opportunities found yet")
        lines.append(rule)

        return "\n".join(lines)

    def render(self, force: bool = False) -> Optional[str]:
        """
        Log the table unless it was rendered within the refresh interval.
        Returns the rendered text, or None when throttled.
        """
        now = time.monotonic()
        if not force and now - self._last_render < self.refresh_seconds:
            return None

        self._last_render = now
        table = self.format_table()
        logger.info("\n" + table)
        return table


def format_execution_summary(history) -> str:
    """Shutdown summary of the execution history"""
    from flasharb.executor import ExecutionStatus

    total = len(history)
    successes = [r for r in history if r.status == ExecutionStatus.SUCCESS]
    failures = sum(1 for r in history if r.status == ExecutionStatus.FAILED)
    errors = sum(1 for r in history if r.status == ExecutionStatus.ERROR)
    success_rate = (len(successes) / total * 100) if total > 0 else 0
    expected_profit = sum((r.profit_usd for r in successes), Decimal(0))

    return (
        f"\n{'='*60}\n"
        f"📊 BOT STATISTICS\n"
        f"{'='*60}\n"
        f"Executions: {total}\n"
        f"Successful: {len(successes)} ({success_rate:.1f}%)\n"
        f"Failed on-chain: {failures}\n"
        f"Submission errors: {errors}\n"
        f"Expected profit (successful): ${expected_profit:.4f}\n"
        f"{'='*60}\n"
    )
