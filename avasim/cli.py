#!/usr/bin/env python3
"""
Avasim CLI
A Python CLI tool for running a local multi-node network with a custom VM.
"""

import click

from avasim import __version__
from avasim.commands import create_sample, ids, run


@click.group()
@click.version_option(version=__version__)
def cli():
    """Avasim CLI - Run a local network and deploy a custom VM on it."""
    pass


cli.add_command(run)
cli.add_command(ids)
cli.add_command(create_sample)


def main():
    """Main entry point for the avasim CLI."""
    cli()


if __name__ == "__main__":
    main()
