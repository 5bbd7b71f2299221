"""
Lockdoc CLI: `lockdoc` command.

Commands:
  lockdoc key import|status|forget   Manage the signing key
  lockdoc deposit <file> --until     Lock a document until a deadline
  lockdoc show <ref>                 Inspect a record, extract its document
  lockdoc withdraw <ref> <address>   Move an expired record to an address
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install lockdoc[cli]")

from lockdoc.builder import DEFAULT_FEE_RATE, DEFAULT_LOCKTIME_MARGIN
from lockdoc.client import AsyncLockdoc
from lockdoc.models.record import Network
from lockdoc.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".lockdoc" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))
    CONFIG_FILE.chmod(0o600)


def _get_client(network: Optional[Network] = None, require_key: bool = True) -> AsyncLockdoc:
    cfg = _load_config()
    if require_key and not cfg.get("wif"):
        console.print("[red]No signing key. Run `lockdoc key import` first.[/red]")
        raise SystemExit(1)
    return AsyncLockdoc(
        network=network or Network(cfg.get("network", "test")),
        wif=cfg.get("wif"),
        base_url=cfg.get("base_url", DEFAULT_BASE_URL),
        proxy_url=cfg.get("proxy_url"),
        fee_rate=int(cfg.get("fee_rate", DEFAULT_FEE_RATE)),
        locktime_margin=int(cfg.get("locktime_margin", DEFAULT_LOCKTIME_MARGIN)),
    )


def _run(coro):
    return asyncio.run(coro)


def parse_deadline(value: str) -> int:
    """Integer block height / UNIX timestamp, or an ISO date or datetime (UTC if naive)."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"expected a number or an ISO date, got {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


@click.group()
@click.version_option("0.1.0")
def main():
    """Lockdoc CLI: time-locked document custody on Bitcoin SV."""


# Register subcommands from separate modules
from lockdoc.cli.key import key
from lockdoc.cli.records import deposit_cmd, show_cmd, withdraw_cmd

main.add_command(key)
main.add_command(deposit_cmd)
main.add_command(show_cmd)
main.add_command(withdraw_cmd)


if __name__ == "__main__":
    main()
