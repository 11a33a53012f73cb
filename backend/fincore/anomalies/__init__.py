from .detectors import (
    detect_budget_overruns,
    detect_duplicate_transactions,
    detect_missing_receipts,
    detect_spending_spikes,
    detect_suspicious_vendors,
    detect_unusual_amounts,
)
from .types import AnomalyFinding, AnomalyType, Severity

__all__ = [
    "AnomalyFinding",
    "AnomalyType",
    "Severity",
    "detect_budget_overruns",
    "detect_duplicate_transactions",
    "detect_missing_receipts",
    "detect_spending_spikes",
    "detect_suspicious_vendors",
    "detect_unusual_amounts",
]
