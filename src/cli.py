import csv
import json
from pathlib import Path

import click
import requests

from batcher.amounts import format_amount, parse_amount
from batcher.errors import InvalidAmount
from batcher.wallet_secret import encrypt_mnemonic


def load_transfers(filepath: str) -> dict[str, str]:
    """
    Load a recipient file into a mapping of address to amount.

    JSON files hold an object of address to amount. CSV files have
    ``address,amount`` columns with a header row.
    """
    path = Path(filepath)
    if path.suffix.lower() == ".json":
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise click.BadParameter("JSON file must contain an object of address to amount")
        return {str(address): str(amount) for address, amount in data.items()}

    transfers = {}
    with open(path, "r", newline="") as f:
        reader = csv.DictReader(f)
        for row_num, row in enumerate(reader, start=2):
            normalized = {k.strip().lower(): (v or "").strip() for k, v in row.items()}
            address = normalized.get("address", "")
            if not address:
                raise click.BadParameter(f"Row {row_num}: missing address")
            if address in transfers:
                raise click.BadParameter(f"Row {row_num}: duplicate address {address}")
            transfers[address] = normalized.get("amount", "")
    return transfers


@click.group()
def cli():
    pass


@cli.command()
@click.option('--mnemonic', type=str, prompt="Mnemonic phrase", help='Mnemonic phrase')
@click.option('--password', type=str, prompt="Password to encrypt the mnemonic", hide_input=True, help='Password for the cipher text')
def generate_cipher_text(mnemonic: str, password: str):
    """Encrypt a wallet mnemonic for the CIPHER_TEXT setting."""
    cipher_text = encrypt_mnemonic(mnemonic, password)
    click.echo(f"CIPHER_TEXT={cipher_text}")
    return cipher_text


@cli.command()
@click.argument('amount')
def to_nano(amount: str):
    """Print an amount in nanotons."""
    try:
        nano = parse_amount(amount)
    except InvalidAmount as e:
        raise click.BadParameter(e.message, param_hint="AMOUNT")
    click.echo(f"{format_amount(nano)} TON = {nano} nanoton")


@cli.command()
@click.argument('recipients', type=click.Path(exists=True, dir_okay=False))
@click.option('--send-mode', type=click.IntRange(0, 255), default=1, show_default=True, help='Send mode for every message')
@click.option('--comment', type=str, default="", help='Comment attached to every message')
@click.option('--server-url', type=str, default="http://localhost:8888", show_default=True, help='Transfer API url')
def send(recipients: str, send_mode: int, comment: str, server_url: str):
    """Send a recipient file to a running transfer API."""
    transfers = load_transfers(recipients)
    response = requests.post(
        f"{server_url}/sendTransactions",
        params={"send_mode": send_mode, "comment": comment},
        json=transfers,
    )
    click.echo(json.dumps(response.json(), indent=2))
    if response.status_code != 200:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
