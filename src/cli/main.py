"""
CLI entry point: trade-guard serve | evaluate | market | audit | health.

Every command loads config from --config (default config.yaml) and the
per-ticker guard policies from the JSON policy files.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

import click
from dotenv import load_dotenv

from config import AppConfig, load_config, load_policies

load_dotenv()

logger = logging.getLogger("trade_guard")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _build_dispatcher(cfg: AppConfig, oracle=None):
    """Wire oracle, policies, audit journal and event logger into a dispatcher."""
    from cli.structured_log import StructuredEventLogger
    from execution import ExecutionDispatcher
    from journal import AuditJournal

    if oracle is None:
        from broker import get_alpaca_oracle

        oracle = get_alpaca_oracle(cfg.broker.api_key, cfg.broker.api_secret, paper=cfg.broker.paper)

    policies = load_policies(cfg.tickers, policy_path=cfg.policy_path)
    events = StructuredEventLogger(
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )
    audit = AuditJournal(cfg.audit.path, echo_stdout=cfg.audit.echo_stdout)
    return ExecutionDispatcher(oracle, policies, audit=audit, events=events)


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """trade-guard: guarded order execution for webhook trade signals."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- trade-guard serve ----------


@cli.command()
@click.option("--host", default=None, help="Bind address (default: server.host from config).")
@click.option("--port", default=None, type=int, help="Port (default: server.port from config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the webhook listener."""
    cfg = load_config(ctx.obj["config_path"])
    import uvicorn

    from webhook import create_app

    app = create_app(_build_dispatcher(cfg), path=cfg.server.path)
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    click.echo(
        f"Listening on {bind_host}:{bind_port}{cfg.server.path} "
        f"(tickers: {', '.join(cfg.tickers)}, paper={cfg.broker.paper})"
    )
    uvicorn.run(app, host=bind_host, port=bind_port)


# ---------- trade-guard evaluate ----------


@cli.command()
@click.argument("ticker")
@click.argument("action")
@click.option("--test", "test_mode", is_flag=True, default=False, help="Send the signal in test mode.")
@click.option("--dry-run", is_flag=True, default=False, help="Use canned in-memory brokerage state; nothing is sent.")
@click.option("--buying-power", default="100000", help="Dry run: account buying power.")
@click.option("--price", default="10", help="Dry run: ask price for TICKER.")
@click.option("--position", default="0", help="Dry run: shares already held.")
@click.pass_context
def evaluate(
    ctx: click.Context,
    ticker: str,
    action: str,
    test_mode: bool,
    dry_run: bool,
    buying_power: str,
    price: str,
    position: str,
) -> None:
    """Push one signal through the guards and print the decision."""
    cfg = load_config(ctx.obj["config_path"])
    from guard_core.signal_validator import parse_signal

    oracle = None
    if dry_run:
        from broker import InMemoryOracle
        from guard_core.contracts import Quote

        oracle = InMemoryOracle(
            buying_power=Decimal(buying_power),
            quotes={ticker: Quote(ask=Decimal(price))},
            positions={ticker: Decimal(position)},
        )

    dispatcher = _build_dispatcher(cfg, oracle)
    decision = dispatcher.dispatch(parse_signal({"ticker": ticker, "action": action, "test": test_mode}))

    click.echo(f"[{decision.status_code}] {decision.message}")
    click.echo(f"  Trail: {' -> '.join(s.value for s in decision.trail)}")
    if decision.price is not None:
        click.echo(f"  Price: {decision.price}  Qty: {decision.quantity}")
    for note in decision.notes:
        click.echo(f"  Note: {note}")
    if dry_run:
        click.echo("  (dry run: no order reached the brokerage)")
    if not decision.approved:
        raise SystemExit(1)


# ---------- trade-guard market ----------


@cli.command()
@click.option("--at", "at_str", default=None, help="ISO timestamp to check (default: now, UTC).")
@click.option("--ticker", default=None, help="Ticker whose policy to use (default: first allow-listed).")
@click.pass_context
def market(ctx: click.Context, at_str: str | None, ticker: str | None) -> None:
    """Show whether the market window is open."""
    cfg = load_config(ctx.obj["config_path"])
    from config.policy import load_policy
    from guard_core.market_calendar import is_market_open, regional_hour

    symbol = ticker or cfg.tickers[0]
    policy = load_policy(cfg.policy_path, ticker=symbol)
    if at_str:
        at = datetime.fromisoformat(at_str)
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
    else:
        at = datetime.now(timezone.utc)

    hours = policy.market_hours
    state = "OPEN" if is_market_open(at, hours) else "CLOSED"
    click.echo(f"Market {state} for {symbol} at {at.astimezone(timezone.utc).isoformat()}")
    click.echo(
        f"  Regional hour: {regional_hour(at, hours.utc_offset_hours)} "
        f"(window {hours.open_hour}-{hours.close_hour}, UTC{hours.utc_offset_hours:+d})"
    )


# ---------- trade-guard audit ----------


@cli.command()
@click.option("--limit", default=20, help="Number of records to show.")
@click.option("--ticker", default=None, help="Only show records for this ticker.")
@click.pass_context
def audit(ctx: click.Context, limit: int, ticker: str | None) -> None:
    """Show recent order attempts from the audit journal."""
    cfg = load_config(ctx.obj["config_path"])
    from journal import AuditJournal

    records = AuditJournal(cfg.audit.path).read_recent(limit=limit, ticker=ticker)
    if not records:
        click.echo("No audit records yet.")
        return
    click.echo(f"Recent order attempts ({len(records)}):")
    for r in records:
        click.echo(
            f"  {r.get('timestamp', '?')}  {r.get('action', '?'):4s} {r.get('quantity', '?')} "
            f"{r.get('ticker', '?')} @ {r.get('price', '?')}  {r.get('notes', '')}"
        )


# ---------- trade-guard health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, policies, audit path, credentials.

    Exit code 0 = healthy, 1 = unhealthy. Designed for Docker HEALTHCHECK.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (tickers={', '.join(cfg.tickers)})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        policies = load_policies(cfg.tickers, policy_path=cfg.policy_path)
        checks.append(("policy", True, f"validated ({len(policies)} tickers)"))
    except Exception as e:
        checks.append(("policy", False, str(e)))

    audit_dir = os.path.dirname(os.path.abspath(cfg.audit.path))
    try:
        os.makedirs(audit_dir, exist_ok=True)
        writable = os.access(audit_dir, os.W_OK)
        checks.append(("audit", writable, f"{cfg.audit.path} {'writable' if writable else 'not writable'}"))
    except OSError as e:
        checks.append(("audit", False, str(e)))

    if cfg.broker.has_credentials:
        checks.append(("credentials", True, f"present (paper={cfg.broker.paper})"))
    else:
        checks.append(("credentials", False, "APCA_API_KEY_ID / APCA_API_SECRET_KEY not set"))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
