"""
Vault Status Tool — inspect persisted vault state from the command line.

Reads the SQL state store directly and reports the configuration, the
contract version, the withdrawal readiness timestamp and whether a claim
would be accepted at a given time. Vault state is never modified; the
store's tables are created if the database does not have them yet.

Also issues the sender tokens the HTTP API expects in ``X-Sender-Token``.

Usage:
    python -m unity_vault.cli status
    python -m unity_vault.cli status --database-url sqlite:///vault.db
    python -m unity_vault.cli status --at 1700000000 --verbose
    python -m unity_vault.cli token gordon-gekko-address
"""

from __future__ import annotations

import argparse
import sys
import time
from datetime import datetime, timezone

from rich.console import Console
from rich.table import Table

from unity_vault.api.auth import sender_token
from unity_vault.config import settings
from unity_vault.host.bank import BankLedger
from unity_vault.storage.service import SqlStorage
from unity_vault.vault.controller import VaultController
from unity_vault.vault.deps import Deps
from unity_vault.vault.errors import NotInstantiated
from unity_vault.vault.identity import AddressValidator
from unity_vault.vault.schema import Env

console = Console()


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def run_status(database_url: str, at: int | None = None, verbose: bool = False) -> bool:
    """
    Print the vault status.

    Args:
        database_url: SQLAlchemy connection string for the state store.
        at: Host time (seconds) to evaluate readiness at; defaults to now.
        verbose: Also list the raw storage keys.

    Returns:
        True if the vault is instantiated, False otherwise.
    """
    console.print("\n[bold blue]═══ Unity Vault Status ═══[/bold blue]\n")

    storage = SqlStorage(database_url)
    storage.initialize()

    now = at if at is not None else int(time.time())
    deps = Deps(storage=storage, api=AddressValidator(), querier=BankLedger())
    env = Env(block_time=now, contract_address=settings.contract_address)
    controller = VaultController()

    try:
        config = controller.query_config(deps)
        version = controller.query_contract_version(deps)
    except NotInstantiated:
        console.print("[yellow]⚠ Vault has not been instantiated[/yellow]")
        return False

    ready_at = controller.query_withdrawal_ready_time(deps).withdrawal_ready_timestamp
    is_ready = controller.query_is_withdrawal_ready(deps, env).is_withdrawal_ready

    console.print(f"  Contract:          [bold]{version.contract}[/bold] v{version.version}")
    console.print(f"  Withdraw address:  [bold]{config.withdraw_address}[/bold]")
    console.print(f"  Delay:             {config.withdraw_delay_in_days} day(s)")
    console.print(f"  Native denom:      {config.native_denom or '—'}")
    console.print(f"  Evaluated at:      {now} ({_fmt_ts(now)})")

    if ready_at is None:
        console.print("  Withdrawal:        [dim]not requested[/dim]")
    elif is_ready:
        console.print(f"  Withdrawal:        [bold green]✓ READY[/bold green] since {_fmt_ts(ready_at)}")
    else:
        remaining = ready_at - now
        console.print(
            f"  Withdrawal:        [bold yellow]LOCKED[/bold yellow] until {_fmt_ts(ready_at)} "
            f"({remaining}s remaining)"
        )

    if verbose:
        console.print("\n[bold]Storage Keys:[/bold]")
        table = Table(show_lines=True)
        table.add_column("Key", style="cyan", width=20)
        table.add_column("Bytes", style="green", width=8)
        for key in storage.keys():
            raw = storage.get(key) or b""
            table.add_row(key, str(len(raw)))
        console.print(table)

    console.print("\n[bold blue]═══ Done ═══[/bold blue]\n")
    return True


def run_token(identity: str) -> str:
    """Print and return the API sender token for ``identity``."""
    token = sender_token(identity)
    console.print(token, soft_wrap=True, highlight=False)
    return token


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Unity Vault state inspector"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show configuration and withdrawal readiness")
    status.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy connection string (defaults to .env settings)",
    )
    status.add_argument(
        "--at",
        type=int,
        default=None,
        help="Evaluate readiness at this host time (seconds since epoch)",
    )
    status.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="List raw storage keys",
    )
    token = sub.add_parser("token", help="Issue the API sender token for an identity")
    token.add_argument("identity", help="Identity the token authenticates")

    args = parser.parse_args(argv)

    if args.command == "token":
        run_token(args.identity)
        sys.exit(0)

    db_url = args.database_url or settings.database_url
    ok = run_status(db_url, at=args.at, verbose=args.verbose)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
