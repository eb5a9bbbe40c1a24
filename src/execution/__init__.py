"""
Execution: TradeSignal → guards → one brokerage order → audit → Decision.
One attempt per signal, no retries.
"""

from execution.dispatcher import ExecutionDispatcher

__all__ = ["ExecutionDispatcher"]
