"""
Configuration loaders.

App config:    reads config.yaml, resolves env vars for secrets.
Guard policy:  reads policy.default.json (or override), validates against JSON Schema.
"""

from config.loader import (
    AlertingConfig,
    AppConfig,
    AuditConfig,
    BrokerConfig,
    ServerConfig,
    load_config,
)
from config.policy import (
    BypassConfig,
    GuardPolicy,
    GuardToggles,
    MarketHoursConfig,
    OrderConfig,
    PolicyConfigError,
    RiskConfig,
    load_policies,
    load_policy,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "AuditConfig",
    "BrokerConfig",
    "ServerConfig",
    "load_config",
    # Guard policy (JSON + schema)
    "BypassConfig",
    "GuardPolicy",
    "GuardToggles",
    "MarketHoursConfig",
    "OrderConfig",
    "PolicyConfigError",
    "RiskConfig",
    "load_policies",
    "load_policy",
]
