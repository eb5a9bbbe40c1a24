"""Pytest fixtures: pinned clocks, canned brokerage state, default guard policy."""

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from broker import InMemoryOracle
from config.policy import GuardPolicy, load_policy
from execution.dispatcher import ExecutionDispatcher
from guard_core.contracts import Quote
from journal import AuditJournal

# Wednesday 2024-01-17 15:00 UTC -> regional hour 10, inside 8..15.
OPEN_TS = datetime(2024, 1, 17, 15, 0, tzinfo=timezone.utc)
# Wednesday 2024-01-17 22:00 UTC -> regional hour 17, after close.
CLOSED_TS = datetime(2024, 1, 17, 22, 0, tzinfo=timezone.utc)
# Saturday.
WEEKEND_TS = datetime(2024, 1, 20, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def ticker() -> str:
    return "IMNM"


@pytest.fixture
def policy() -> GuardPolicy:
    return load_policy()


@pytest.fixture
def oracle(ticker: str) -> InMemoryOracle:
    """$10,000 buying power, ask at $40: 2% sizing gives 5 shares."""
    return InMemoryOracle(
        buying_power=Decimal("10000"),
        quotes={ticker: Quote(ask=Decimal("40"))},
    )


@pytest.fixture
def audit(tmp_path: Path) -> AuditJournal:
    return AuditJournal(tmp_path / "audit.jsonl")


@pytest.fixture
def make_dispatcher(ticker: str, policy: GuardPolicy, oracle: InMemoryOracle, audit: AuditJournal):
    """Factory: dispatcher over the canned oracle with a pinned clock."""

    def _make(now: datetime = OPEN_TS, **kwargs) -> ExecutionDispatcher:
        kwargs.setdefault("audit", audit)
        policies = kwargs.pop("policies", {ticker: policy})
        return ExecutionDispatcher(
            kwargs.pop("oracle", oracle),
            policies,
            clock=lambda: now,
            **kwargs,
        )

    return _make
