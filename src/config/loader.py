"""
Config loader: YAML file -> frozen dataclass tree.

API secrets resolved from environment variables (APCA_API_KEY_ID, APCA_API_SECRET_KEY,
falling back to ALPACA_API_KEY / ALPACA_SECRET_KEY). Config file holds only
non-secret values.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

_KEY_ENV_VARS = ("APCA_API_KEY_ID", "ALPACA_API_KEY")
_SECRET_ENV_VARS = ("APCA_API_SECRET_KEY", "ALPACA_SECRET_KEY")


@dataclass(frozen=True)
class BrokerConfig:
    paper: bool = True
    api_key: str = field(default="", repr=False)
    api_secret: str = field(default="", repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)


@dataclass(frozen=True)
class AuditConfig:
    path: str = "data/audit.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    path: str = "/api/trade"


@dataclass(frozen=True)
class AppConfig:
    tickers: tuple[str, ...]
    broker: BrokerConfig
    audit: AuditConfig = AuditConfig()
    alerting: AlertingConfig = AlertingConfig()
    server: ServerConfig = ServerConfig()
    policy_path: str | None = None


def _first_env(names: tuple[str, ...]) -> str:
    for name in names:
        value = os.environ.get(name, "")
        if value:
            return value
    return ""


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    API keys are resolved from environment variables:
      - APCA_API_KEY_ID      (or ALPACA_API_KEY)
      - APCA_API_SECRET_KEY  (or ALPACA_SECRET_KEY)
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    tickers = raw.get("tickers", ["IMNM"])
    if isinstance(tickers, str):
        tickers = [tickers]
    if not isinstance(tickers, list) or not all(isinstance(t, str) and t for t in tickers):
        raise ValueError("'tickers' must be a list of non-empty strings")

    b_raw = raw.get("broker", {})
    broker_cfg = BrokerConfig(
        paper=bool(b_raw.get("paper", True)),
        api_key=_first_env(_KEY_ENV_VARS),
        api_secret=_first_env(_SECRET_ENV_VARS),
    )

    a_raw = raw.get("audit", {})
    audit_cfg = AuditConfig(
        path=a_raw.get("path", "data/audit.jsonl"),
        echo_stdout=bool(a_raw.get("echo_stdout", False)),
    )

    al_raw = raw.get("alerting", {})
    alerting_cfg = AlertingConfig(
        structured_logs=bool(al_raw.get("structured_logs", True)),
        webhook_url=str(al_raw.get("webhook_url", "")),
    )

    s_raw = raw.get("server", {})
    server_cfg = ServerConfig(
        host=str(s_raw.get("host", "0.0.0.0")),
        port=int(s_raw.get("port", 8000)),
        path=str(s_raw.get("path", "/api/trade")),
    )

    return AppConfig(
        tickers=tuple(tickers),
        broker=broker_cfg,
        audit=audit_cfg,
        alerting=alerting_cfg,
        server=server_cfg,
        policy_path=raw.get("policy_path"),
    )
