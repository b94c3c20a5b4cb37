"""
Ids command - show the node ids derived from the staking certificates.
"""

import sys

import click
from rich import box
from rich.table import Table

from avasim.commands.constants import (
    BASE_HTTP_PORT,
    EXIT_FAILURE,
    NODE_DIR_TEMPLATE,
    NUM_NODES,
)
from avasim.commands.errors import IdentityError
from avasim.commands.identity import IdentityPool, find_cert_dir
from avasim.commands.node_config import slot_ports
from avasim.commands.utils import console


@click.command()
@click.option(
    "--cert-dir",
    type=click.Path(file_okay=False),
    help="Directory holding keys1..keysN/staker.{crt,key} or staker1..N.{crt,key} (default: avalanchego's staking/local, found next to the binary or in common checkout locations)",
)
@click.option(
    "--count",
    default=NUM_NODES,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of identities to load",
)
@click.option(
    "--binary-path",
    help="avalanchego binary whose checkout holds staking/local",
)
def ids(cert_dir, count, binary_path):
    """List the node ids the network will run with."""
    try:
        cert_dir = find_cert_dir(cert_dir, binary_path=binary_path)
        pool = IdentityPool.from_directory(cert_dir, count)
    except IdentityError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FAILURE)

    table = Table(title="Node Identities", box=box.ROUNDED)
    table.add_column("Node", style="cyan")
    table.add_column("Node ID", style="green")
    table.add_column("HTTP", style="yellow")
    table.add_column("Staking", style="yellow")
    table.add_column("Role", style="magenta")
    table.add_column("Genesis validator", style="green")

    for identity in pool.identities():
        http_port, staking_port = slot_ports(BASE_HTTP_PORT, identity.index)
        table.add_row(
            NODE_DIR_TEMPLATE.format(number=identity.index + 1),
            identity.node_id,
            str(http_port),
            str(staking_port),
            "bootstrap seed" if identity.index == 0 else "peer",
            "yes" if identity.genesis_validator else "[red]no[/red]",
        )

    console.print(table)
