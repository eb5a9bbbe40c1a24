"""
Brokerage adapters: account, position, order and quote reads plus order placement.

Depends on guard_core.contracts; no dependency from guard_core back to broker.
"""

from broker.oracle import AccountOracle, InMemoryOracle

__all__ = [
    "AccountOracle",
    "InMemoryOracle",
]


def get_alpaca_oracle(api_key: str, api_secret: str, *, paper: bool = True):
    """Lazy import to avoid requiring alpaca-py when not used."""
    from broker.alpaca_oracle import AlpacaOracle

    return AlpacaOracle(api_key, api_secret, paper=paper)
