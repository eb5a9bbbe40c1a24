"""
Fault taxonomy for the decision engine.

    ValidationFault   bad ticker / action / body        -> 403 or 400, never retried
    PolicyRejection   market closed, day-trade, dup     -> 403 / 409, a business decision
    PricingFault      unusable quote, too little cash   -> 400
    DependencyFault   brokerage transport/auth failure  -> 500, no detail to the caller
    AuditFault        audit sink failure                -> never reaches the caller
"""

from __future__ import annotations


class GuardFault(Exception):
    """Base class. ``reason`` is safe to return to the caller."""

    kind = "fault"
    default_status = 500

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code if status_code is not None else self.default_status


class ValidationFault(GuardFault):
    kind = "validation"
    default_status = 400


class PolicyRejection(GuardFault):
    kind = "policy"
    default_status = 403


class PricingFault(GuardFault):
    kind = "pricing"
    default_status = 400


class DependencyFault(GuardFault):
    """External call failed. ``detail`` is for server-side logs only."""

    kind = "dependency"
    default_status = 500

    def __init__(self, operation: str, detail: str = "") -> None:
        super().__init__("Server error", 500)
        self.operation = operation
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.operation} failed: {self.detail}" if self.detail else f"{self.operation} failed"


class AuditFault(Exception):
    """Audit append failed. Reported server-side only."""
