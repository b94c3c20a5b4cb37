"""
Run configuration - defaults, YAML loading and command line overrides.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from avasim.commands.constants import (
    ACTIVATION_POLL_INTERVAL,
    BASE_HTTP_PORT,
    BOOTSTRAP_POLL_INTERVAL,
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_NETWORK_ID,
    DEFAULT_PASSWORD,
    DEFAULT_SYSTEM_PLUGIN_DIR,
    DEFAULT_USERNAME,
    DEFAULT_VALIDATOR_WEIGHT,
    DEFAULT_VM_ID,
    DEFAULT_VM_NAME,
    DEFAULT_WHITELISTED_SUBNETS,
    NUM_NODES,
    TX_POLL_INTERVAL,
)
from avasim.commands.errors import ConfigurationError
from avasim.commands.node_config import NodeFlags
from avasim.commands.utils import console


@dataclass
class RunSettings:
    """Everything a run needs besides the identities themselves."""

    base_http_port: int = BASE_HTTP_PORT
    host: str = DEFAULT_HOST
    network_id: str = DEFAULT_NETWORK_ID
    log_level: str = DEFAULT_LOG_LEVEL
    node_count: int = NUM_NODES
    binary_path: Optional[str] = None
    plugin_dir: Optional[str] = DEFAULT_SYSTEM_PLUGIN_DIR
    cert_dir: Optional[str] = None
    work_dir: Optional[str] = None
    chain_config_dir: Optional[str] = None
    vm_id: str = DEFAULT_VM_ID
    vm_name: str = DEFAULT_VM_NAME
    whitelisted_subnets: str = DEFAULT_WHITELISTED_SUBNETS
    bootstrap_poll_interval: float = BOOTSTRAP_POLL_INTERVAL
    tx_poll_interval: float = TX_POLL_INTERVAL
    activation_poll_interval: float = ACTIVATION_POLL_INTERVAL
    validator_weight: int = DEFAULT_VALIDATOR_WEIGHT
    username: str = DEFAULT_USERNAME
    password: str = field(default=DEFAULT_PASSWORD, repr=False)
    node_flags: dict[str, Any] = field(default_factory=dict)

    # Command line only
    vm_path: Optional[str] = None
    vm_genesis: Optional[str] = None
    exit_on_complete: bool = False

    @property
    def has_custom_vm(self) -> bool:
        return self.vm_path is not None

    def with_overrides(self, **overrides: Any) -> "RunSettings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


# Keys accepted in a YAML run config and the types their values may take
CONFIG_FIELD_TYPES: dict[str, tuple] = {
    "base_http_port": (int,),
    "host": (str,),
    "network_id": (str, int),
    "log_level": (str,),
    "node_count": (int,),
    "binary_path": (str,),
    "plugin_dir": (str,),
    "cert_dir": (str,),
    "work_dir": (str,),
    "chain_config_dir": (str,),
    "vm_id": (str,),
    "vm_name": (str,),
    "whitelisted_subnets": (str,),
    "bootstrap_poll_interval": (int, float),
    "tx_poll_interval": (int, float),
    "activation_poll_interval": (int, float),
    "validator_weight": (int,),
    "username": (str,),
    "password": (str,),
    "node_flags": (dict,),
}

LOG_LEVELS = {"off", "fatal", "error", "warn", "info", "trace", "debug", "verbo", "all"}


def _type_names(types: tuple) -> str:
    return " or ".join(t.__name__ for t in types)


def _check_type(key: str, value: Any, types: tuple, config_file: Optional[str]) -> None:
    # bool is an int subclass but never a valid port, count or interval
    if isinstance(value, bool) and bool not in types:
        ok = False
    else:
        ok = isinstance(value, types)
    if not ok:
        raise ConfigurationError(
            f"'{key}' must be {_type_names(types)} (got {type(value).__name__})",
            config_file=config_file,
            field=key,
        )


def validate_node_flags(flags: dict[str, Any], config_file: Optional[str] = None) -> None:
    """Check node flag overrides against the NodeFlags defaults."""
    defaults = NodeFlags()
    known = NodeFlags.field_names()
    for name, value in flags.items():
        if name not in known:
            raise ConfigurationError(
                f"Unknown node flag '{name}'",
                config_file=config_file,
                field=f"node_flags.{name}",
            )
        expected = type(getattr(defaults, name))
        types = (int, float) if expected is float else (expected,)
        _check_type(f"node_flags.{name}", value, types, config_file)


def settings_from_dict(
    data: dict[str, Any], config_file: Optional[str] = None
) -> RunSettings:
    """Build RunSettings from a mapping, rejecting unknown keys and bad types."""
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Run configuration must be a mapping", config_file=config_file
        )

    unknown = sorted(set(data) - set(CONFIG_FIELD_TYPES))
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration key(s): {', '.join(unknown)}",
            config_file=config_file,
            field=unknown[0],
        )

    values = {}
    for key, value in data.items():
        if value is None:
            continue
        _check_type(key, value, CONFIG_FIELD_TYPES[key], config_file)
        values[key] = value

    if "network_id" in values:
        values["network_id"] = str(values["network_id"])
    if "node_flags" in values:
        validate_node_flags(values["node_flags"], config_file)

    settings = RunSettings(**values)
    validate_settings(settings, config_file)
    return settings


def validate_settings(settings: RunSettings, config_file: Optional[str] = None) -> None:
    """Range checks that apply regardless of where the values came from."""
    if settings.node_count < 1:
        raise ConfigurationError(
            f"'node_count' must be at least 1 (got {settings.node_count})",
            config_file=config_file,
            field="node_count",
        )
    last_port = settings.base_http_port + 2 * settings.node_count - 1
    if settings.base_http_port < 1 or last_port > 65535:
        raise ConfigurationError(
            f"Ports {settings.base_http_port}-{last_port} are out of range",
            config_file=config_file,
            field="base_http_port",
        )
    for name in ("bootstrap_poll_interval", "tx_poll_interval", "activation_poll_interval"):
        if getattr(settings, name) <= 0:
            raise ConfigurationError(
                f"'{name}' must be positive", config_file=config_file, field=name
            )
    if settings.validator_weight < 1:
        raise ConfigurationError(
            "'validator_weight' must be positive",
            config_file=config_file,
            field="validator_weight",
        )
    if settings.log_level.lower() not in LOG_LEVELS:
        raise ConfigurationError(
            f"'log_level' must be one of {', '.join(sorted(LOG_LEVELS))}",
            config_file=config_file,
            field="log_level",
        )
    if (settings.vm_path is None) != (settings.vm_genesis is None):
        raise ConfigurationError(
            "A custom VM needs both a VM binary and a genesis file",
            field="vm_path" if settings.vm_path is None else "vm_genesis",
        )


def load_run_config(config_path: str) -> RunSettings:
    """Load run settings from a YAML file.

    Raises:
        ConfigurationError: if the file is missing, not valid YAML, or invalid
    """
    try:
        with open(config_path) as file:
            data = yaml.safe_load(file)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Run configuration file not found: {config_path}",
            config_file=config_path,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML format: {str(e)}", config_file=config_path
        ) from e

    # An empty file means "all defaults"
    if data is None:
        data = {}
    return settings_from_dict(data, config_file=config_path)


def create_sample_run_config(output_path: str = "avasim.yml") -> Path:
    """Write a sample run configuration file."""
    sample_config = {
        # First HTTP port; node i uses base_http_port + 2*i (HTTP) and +1 (staking)
        "base_http_port": BASE_HTTP_PORT,
        "host": DEFAULT_HOST,
        "network_id": DEFAULT_NETWORK_ID,
        # Node log level (off, fatal, error, warn, info, trace, debug, verbo, all)
        "log_level": DEFAULT_LOG_LEVEL,
        "node_count": NUM_NODES,
        # Directory holding the node's system plugins (e.g. evm)
        "plugin_dir": DEFAULT_SYSTEM_PLUGIN_DIR,
        # Custom VM settings, used when --vm-path/--vm-genesis are given
        "vm_id": DEFAULT_VM_ID,
        "vm_name": DEFAULT_VM_NAME,
        "whitelisted_subnets": DEFAULT_WHITELISTED_SUBNETS,
        "validator_weight": DEFAULT_VALIDATOR_WEIGHT,
        # Polling intervals in seconds
        "bootstrap_poll_interval": BOOTSTRAP_POLL_INTERVAL,
        "tx_poll_interval": TX_POLL_INTERVAL,
        "activation_poll_interval": ACTIVATION_POLL_INTERVAL,
        # Extra node flags (snake_case names of the node's command line flags)
        "node_flags": {
            "snow_sample_size": 2,
            "snow_quorum_size": 2,
            "consensus_gossip_frequency": "10s",
        },
    }

    output = Path(output_path)
    with open(output, "w") as file:
        yaml.dump(sample_config, file, default_flow_style=False, sort_keys=False)

    console.print(f"[green]✓ Sample run configuration created: {output}[/green]")
    console.print("[yellow]Edit the file and start the network with:[/yellow]")
    console.print(f"[cyan]  avasim run --config {output}[/cyan]")
    return output
