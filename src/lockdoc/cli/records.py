"""CLI: lockdoc deposit, lockdoc show, lockdoc withdraw"""

import json
import mimetypes
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from lockdoc.errors import LockdocError
from lockdoc.keys import address_to_identity, identity_to_address
from lockdoc.models.envelope import PDF_CONTENT_TYPE
from lockdoc.models.record import RecordRef

console = Console()


def _get_client(network=None, require_key: bool = True):
    from lockdoc.cli.main import _get_client
    return _get_client(network, require_key)


def _run(coro):
    from lockdoc.cli.main import _run
    return _run(coro)


def _parse_ref(value: str) -> RecordRef:
    try:
        return RecordRef.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _format_deadline(deadline: int) -> str:
    if deadline < 500_000_000:
        return f"block {deadline}"
    dt = datetime.fromtimestamp(deadline, tz=timezone.utc)
    return f"{dt:%B} {dt.day}, {dt:%Y %H:%M} UTC"


@click.command("deposit")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--until", "until", required=True, help="Deadline: ISO date, UNIX timestamp or block height")
@click.option("--content-type", default=None, help="Defaults to a guess from the file name")
@click.option("--recipient", default=None, help="Address allowed to withdraw (default: own key)")
@click.option("--encrypt", is_flag=True, help="Encrypt the document before inscribing it")
def deposit_cmd(file: Path, until: str, content_type: Optional[str], recipient: Optional[str], encrypt: bool):
    """Lock a document until a deadline."""
    from lockdoc.cli.main import parse_deadline
    deadline = parse_deadline(until)
    if deadline >= 500_000_000 and deadline <= time.time():
        raise click.BadParameter("deadline must be in the future", param_hint="--until")
    content_type = content_type or mimetypes.guess_type(file.name)[0] or PDF_CONTENT_TYPE

    async def _deposit():
        client = _get_client()
        try:
            recipient_identity = address_to_identity(recipient, client.network) if recipient else None
            with console.status("Broadcasting deposit..."):
                ref = await client.deposit(
                    file.read_bytes(), deadline, content_type=content_type,
                    recipient=recipient_identity, encrypt=encrypt,
                )
        except (LockdocError, ValueError) as e:
            raise click.ClickException(str(e))
        finally:
            await client.close()
        console.print(f"[green]Deposited:[/green] {ref}")
        console.print(f"[dim]{ref.explorer_url}[/dim]")

    _run(_deposit())


@click.command("show")
@click.argument("ref", callback=lambda ctx, param, value: _parse_ref(value))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the (decrypted) document to this file")
@click.option("--json-output", "--json", is_flag=True, help="Print the record as JSON")
def show_cmd(ref: RecordRef, output: Optional[Path], json_output: bool):
    """Inspect a custody record."""

    async def _show():
        client = _get_client(ref.network, require_key=False)
        try:
            record = await client.resolve(ref)
            inscription = await client.inscription_id(ref)
            document = await client.read_document(record) if output else None
        except LockdocError as e:
            raise click.ClickException(str(e))
        finally:
            await client.close()

        contract, frame = record.contract, record.envelope
        spendable = contract.is_spendable(int(time.time())) if not contract.deadline_is_height else None
        info = {
            "ref": str(ref),
            "origin": ref.explorer_url,
            "inscription": inscription,
            "recipient": identity_to_address(contract.recipient_identity, ref.network),
            "deadline": contract.deadline,
            "spendable": spendable,
            "content_type": frame.content_type if frame else None,
            "size": len(frame.payload) if frame else 0,
            "encrypted": frame.looks_encrypted() if frame else False,
        }
        if document is not None:
            output.write_bytes(document)
        if json_output:
            click.echo(json.dumps(info, indent=2))
            return

        table = Table(title=f"Record {ref}", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Origin", info["origin"])
        if inscription:
            table.add_row("Inscription", f"https://1satordinals.com/inscription/{inscription}")
        table.add_row("Recipient", info["recipient"])
        table.add_row("Locked until", _format_deadline(contract.deadline))
        table.add_row("Content", f"{info['content_type']} ({info['size']} bytes)")
        table.add_row("Encrypted", "yes" if info["encrypted"] else "no")
        console.print(table)
        if spendable:
            console.print("[green]Document can be unlocked![/green]")
        if document is not None:
            console.print(f"[dim]Document written to {output}[/dim]")

    _run(_show())


@click.command("withdraw")
@click.argument("ref", callback=lambda ctx, param, value: _parse_ref(value))
@click.argument("address")
def withdraw_cmd(ref: RecordRef, address: str):
    """Withdraw an expired record to an address."""

    async def _withdraw():
        client = _get_client(ref.network)
        try:
            with console.status("Withdrawing..."):
                txid = await client.withdraw(ref, address)
        except (LockdocError, ValueError) as e:
            raise click.ClickException(str(e))
        finally:
            await client.close()
        console.print(f"[green]Withdrawn to {address}:[/green] {txid}")

    _run(_withdraw())
