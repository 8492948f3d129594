"""Selectors for the practice kernel (read side)."""

from practice_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerLine,
    LedgerSelector,
    TrialBalanceRow,
)
from practice_kernel.selectors.period_selector import PeriodRow, PeriodSelector

__all__ = [
    "AccountBalance",
    "LedgerLine",
    "LedgerSelector",
    "PeriodRow",
    "PeriodSelector",
    "TrialBalanceRow",
]
