"""Read-only ledger queries."""

from ledger.queries.reconciliation import (
    BalanceDrift,
    BalanceReconciler,
    recompute_balance,
)
from ledger.queries.reports import (
    CategoryReport,
    CategoryTotal,
    LedgerReporter,
    PeriodReport,
    SubCategoryReport,
    generate_monthly_report,
    generate_report,
)

__all__ = [
    # Reconciliation
    "BalanceDrift",
    "BalanceReconciler",
    "recompute_balance",
    # Reports
    "CategoryReport",
    "CategoryTotal",
    "LedgerReporter",
    "PeriodReport",
    "SubCategoryReport",
    "generate_monthly_report",
    "generate_report",
]
