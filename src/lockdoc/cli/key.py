"""CLI: lockdoc key import|status|forget"""

from typing import Optional

import click
from rich.console import Console

from lockdoc.keys import PrivateKey

console = Console()


def _load_config() -> dict:
    from lockdoc.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from lockdoc.cli.main import _save_config
    _save_config(cfg)


@click.group()
def key():
    """Signing key commands."""


@key.command("import")
@click.option("--base-url", default=None, help="WhatsOnChain API base URL")
@click.option("--proxy-url", default=None, help="Proxy serving /{network}/listUnspent/{address}")
def key_import(base_url: Optional[str], proxy_url: Optional[str]):
    """Import a WIF private key. Its network becomes the default network."""
    wif = click.prompt("WIF private key", hide_input=True)
    try:
        pk = PrivateKey.from_wif(wif)
    except ValueError as e:
        raise click.ClickException(str(e))

    cfg = _load_config()
    cfg.update({"wif": pk.to_wif(), "network": pk.network.value})
    if base_url:
        cfg["base_url"] = base_url
    if proxy_url:
        cfg["proxy_url"] = proxy_url
    _save_config(cfg)
    console.print(f"[green]Key imported:[/green] {pk.address} ({pk.network.value}net)")
    console.print("[dim]Saved to ~/.lockdoc/config.json[/dim]")


@key.command("status")
def key_status():
    """Show the configured key."""
    cfg = _load_config()
    if not cfg.get("wif"):
        console.print("[yellow]No key. Run `lockdoc key import`.[/yellow]")
        return
    pk = PrivateKey.from_wif(cfg["wif"])
    console.print(f"[green]Address[/green] {pk.address} ({pk.network.value}net)")


@key.command("forget")
def key_forget():
    """Remove the saved key."""
    cfg = _load_config()
    cfg.pop("wif", None)
    _save_config(cfg)
    console.print("[green]Key removed.[/green]")
