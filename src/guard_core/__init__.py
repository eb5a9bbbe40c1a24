"""
guard-core: pure trade-guard policy.

Signal validation, market calendar, day-trade and duplicate-exposure
predicates, position sizing. No network; brokerage state arrives through
an injected oracle.
"""

from guard_core.contracts import (
    AccountSnapshot,
    Action,
    AuditRecord,
    Decision,
    DispatchState,
    OrderReceipt,
    OrderRequest,
    Quote,
    TradeSignal,
)
from guard_core.errors import (
    AuditFault,
    DependencyFault,
    GuardFault,
    PolicyRejection,
    PricingFault,
    ValidationFault,
)
from guard_core.signal_validator import parse_signal, validate_signal

__all__ = [
    "AccountSnapshot",
    "Action",
    "AuditFault",
    "AuditRecord",
    "Decision",
    "DependencyFault",
    "DispatchState",
    "GuardFault",
    "OrderReceipt",
    "OrderRequest",
    "parse_signal",
    "PolicyRejection",
    "PricingFault",
    "Quote",
    "TradeSignal",
    "validate_signal",
    "ValidationFault",
]
