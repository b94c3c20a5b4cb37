"""
Run command - start a local network and optionally provision a custom VM.
"""

import sys

import click

from avasim.commands.config import (
    RunSettings,
    create_sample_run_config,
    load_run_config,
)
from avasim.commands.constants import EXIT_FAILURE, EXIT_INTERRUPTED
from avasim.commands.errors import ConfigurationError
from avasim.commands.network import run_network_sync
from avasim.commands.utils import console


def build_settings(config_file, **cli_options) -> RunSettings:
    """Load the YAML config (if any) and apply command line options on top."""
    settings = load_run_config(config_file) if config_file else RunSettings()
    return settings.with_overrides(**cli_options)


@click.command()
@click.option(
    "--vm-path",
    type=click.Path(dir_okay=False),
    help="Location of the custom VM binary. Requires --vm-genesis.",
)
@click.option(
    "--vm-genesis",
    type=click.Path(dir_okay=False),
    help="Location of the custom VM genesis file. Requires --vm-path.",
)
@click.option(
    "--config-dir",
    "chain_config_dir",
    type=click.Path(file_okay=False),
    help="Directory holding chain configs, passed to every node as --chain-config-dir",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    help="YAML run configuration (see 'avasim create-sample')",
)
@click.option(
    "--binary-path",
    help="Path to the avalanchego binary. Defaults to searching PATH and common locations (/usr/local/bin, /usr/bin, ~/bin, ./build).",
)
@click.option(
    "--plugin-dir",
    type=click.Path(file_okay=False),
    help="Directory of system plugins (e.g. evm) copied into the network's plugin dir",
)
@click.option(
    "--cert-dir",
    type=click.Path(file_okay=False),
    help="Directory holding keys1..keysN/staker.{crt,key} or staker1..N.{crt,key} (default: avalanchego's staking/local, found next to the binary or in common checkout locations)",
)
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False),
    help="Working directory for node data and logs (default: a new temp directory)",
)
@click.option(
    "--log-level",
    help="Node log level (default: info)",
)
@click.option(
    "--exit-on-complete",
    is_flag=True,
    help="Stop the network once it is ready (and provisioned) instead of running until interrupted",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def run(
    vm_path,
    vm_genesis,
    chain_config_dir,
    config_file,
    binary_path,
    plugin_dir,
    cert_dir,
    work_dir,
    log_level,
    exit_on_complete,
    verbose,
):
    """
    Start a local network (5 nodes by default).

    This command will:
    1. Derive the node identities from the staking certificates
    2. Start every node, the first one acting as bootstrap seed
    3. Wait until every node is bootstrapped and fully peered
    4. With --vm-path/--vm-genesis: create a subnet, add every node as a
       validator and deploy a blockchain running the custom VM

    The network keeps running until interrupted (Ctrl+C) unless
    --exit-on-complete is given.
    """
    if bool(vm_path) != bool(vm_genesis):
        raise click.UsageError("--vm-path and --vm-genesis must be given together")

    try:
        settings = build_settings(
            config_file,
            vm_path=vm_path,
            vm_genesis=vm_genesis,
            chain_config_dir=chain_config_dir,
            binary_path=binary_path,
            plugin_dir=plugin_dir,
            cert_dir=cert_dir,
            work_dir=work_dir,
            log_level=log_level,
            exit_on_complete=exit_on_complete or None,
        )
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FAILURE)

    if verbose:
        console.print(f"[cyan]Run settings: {settings}[/cyan]")

    try:
        result = run_network_sync(settings, verbose=verbose)
    except KeyboardInterrupt:
        # Interrupted before signal handlers were installed
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(EXIT_INTERRUPTED)

    sys.exit(result.exit_code)


@click.command("create-sample")
@click.option(
    "--output",
    "-o",
    default="avasim.yml",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Where to write the sample configuration",
)
def create_sample(output):
    """
    Create a sample run configuration file.

    The sample lists every supported key with its default value and can be
    passed to 'avasim run --config'.
    """
    create_sample_run_config(output)
