"""
Node configuration - launch flags and per-node slot layout.

This module builds everything a node process needs before it is spawned:
- NodeFlags: every command line flag the node accepts, with local-network
  defaults. The orchestrator only overrides ports, directories, staking
  files, bootstrap peers, plugin dir and the whitelisted subnets.
- NodeSlot: the binding of one identity to its ports and paths.
- build_slots: lays out the slots of a run; slot 0 is the bootstrap seed
  and every other slot bootstraps from it.
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from avasim.commands.constants import (
    DB_DIR_NAME,
    LOGS_DIR_NAME,
    NODE_DIR_TEMPLATE,
    PLUGINS_DIR_NAME,
    STAKER_CERT_FILE,
    STAKER_KEY_FILE,
)
from avasim.commands.identity import IdentityPool, NodeIdentity

if TYPE_CHECKING:
    from avasim.commands.config import RunSettings


@dataclass
class NodeFlags:
    """Command line flags of a node; field names map to ``--kebab-case``."""

    # Assertions
    assertions_enabled: bool = True

    # TX fees
    tx_fee: int = 1000000

    # IP
    public_ip: str = "127.0.0.1"
    dynamic_update_duration: str = "5m"
    dynamic_public_ip: str = ""

    # Network ID
    network_id: str = "local"

    # Crypto
    signature_verification_enabled: bool = True

    # APIs
    api_admin_enabled: bool = True
    api_ipcs_enabled: bool = True
    api_keystore_enabled: bool = True
    api_metrics_enabled: bool = True
    api_health_enabled: bool = True
    api_info_enabled: bool = True

    # HTTP
    http_host: str = "127.0.0.1"
    http_port: int = 9650
    http_tls_enabled: bool = False
    http_tls_cert_file: str = ""
    http_tls_key_file: str = ""

    # Bootstrapping
    bootstrap_ips: str = ""
    bootstrap_ids: str = ""
    bootstrap_beacon_connection_timeout: str = "60s"
    bootstrap_retry_enabled: bool = True

    # Build / plugins
    build_dir: str = ""
    plugin_dir: str = ""

    # DB
    db_dir: str = ""

    # Logging
    log_level: str = "info"
    log_dir: str = ""
    log_display_level: str = ""  # defaults to log_level on the node side
    log_display_highlight: str = "colors"

    # Consensus
    snow_avalanche_batch_size: int = 30
    snow_avalanche_num_parents: int = 5
    snow_sample_size: int = 2
    snow_quorum_size: int = 2
    snow_virtuous_commit_threshold: int = 5
    snow_rogue_commit_threshold: int = 10
    snow_concurrent_repolls: int = 4
    min_delegator_stake: int = 5000000
    consensus_shutdown_timeout: str = "5s"
    consensus_gossip_frequency: str = "10s"
    min_delegation_fee: int = 20000
    min_validator_stake: int = 5000000
    max_stake_duration: str = "8760h"
    max_validator_stake: int = 3000000000000000
    stake_minting_period: str = "8760h"

    # Network timeouts and health
    network_initial_timeout: str = "5s"
    network_minimum_timeout: str = "5s"
    network_maximum_timeout: str = "10s"
    network_health_max_send_fail_rate: float = 0.9
    network_health_max_portion_send_queue_full: float = 0.9
    network_health_max_time_since_msg_sent: str = "1m"
    network_health_max_time_since_msg_received: str = "1m"
    network_health_min_conn_peers: int = 1
    network_timeout_coefficient: int = 2
    network_timeout_halflife: str = "5m"

    # Peer list gossiping
    network_peer_list_gossip_frequency: str = "1s"
    network_peer_list_gossip_size: int = 50
    network_peer_list_size: int = 20

    # Staking
    staking_enabled: bool = False
    staking_port: int = 9651
    staking_disabled_weight: int = 1
    staking_tls_key_file: str = ""
    staking_tls_cert_file: str = ""
    min_stake_duration: str = "336h"
    uptime_requirement: float = 0.6

    # Auth
    api_auth_required: bool = False
    api_auth_password_file: str = ""

    # Subnets and chain configs
    whitelisted_subnets: str = ""
    config_file: str = ""
    chain_config_dir: str = ""

    # IPCs
    ipcs_chain_ids: str = ""
    ipcs_path: str = "/tmp"

    # File descriptor limit
    fd_limit: int = 32768

    # Benchlist
    benchlist_duration: str = "1h"
    benchlist_fail_threshold: int = 10
    benchlist_min_failing_duration: str = "5m"
    benchlist_peer_summary_enabled: bool = False

    # Health
    health_check_averager_halflife: str = "10s"
    health_check_frequency: str = "30s"

    # Router
    router_health_max_outstanding_requests: int = 1024
    router_health_max_drop_rate: float = 1.0

    index_enabled: bool = False
    plugin_mode_enabled: bool = False

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def with_overrides(self, overrides: dict[str, Any]) -> "NodeFlags":
        """Return a copy with ``overrides`` applied (unknown keys raise KeyError)."""
        unknown = set(overrides) - self.field_names()
        if unknown:
            raise KeyError(f"Unknown node flag(s): {', '.join(sorted(unknown))}")
        return replace(self, **overrides)


def _format_flag_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:f}"
    return str(value)


def flags_to_args(flags: NodeFlags) -> list[str]:
    """Convert NodeFlags into ``--name=value`` arguments, skipping empty values."""
    args = []
    for f in fields(flags):
        value = _format_flag_value(getattr(flags, f.name)).strip()
        if not value:
            continue
        args.append(f"--{f.name.replace('_', '-')}={value}")
    return args


@dataclass(frozen=True)
class NodeSlot:
    """One node of the network: its identity, ports, peers and paths."""

    identity: NodeIdentity
    host: str
    http_port: int
    staking_port: int
    bootstrap_ip: str
    bootstrap_id: str
    node_dir: Path
    plugin_dir: Path
    flags: NodeFlags

    @property
    def index(self) -> int:
        return self.identity.index

    @property
    def name(self) -> str:
        return NODE_DIR_TEMPLATE.format(number=self.index + 1)

    @property
    def is_seed(self) -> bool:
        return not self.bootstrap_id

    @property
    def uri(self) -> str:
        return f"http://{self.host}:{self.http_port}"

    @property
    def staking_address(self) -> str:
        return f"{self.host}:{self.staking_port}"

    @property
    def cert_file(self) -> Path:
        return self.node_dir / STAKER_CERT_FILE

    @property
    def key_file(self) -> Path:
        return self.node_dir / STAKER_KEY_FILE

    @property
    def db_dir(self) -> Path:
        return self.node_dir / DB_DIR_NAME

    @property
    def log_dir(self) -> Path:
        return self.node_dir / LOGS_DIR_NAME

    @property
    def log_file(self) -> Path:
        return self.log_dir / f"{self.name}.log"

    def args(self) -> list[str]:
        return flags_to_args(self.flags)


def slot_ports(base_http_port: int, index: int) -> tuple[int, int]:
    """HTTP and staking port of slot ``index``; each slot takes two ports."""
    http_port = base_http_port + 2 * index
    return http_port, http_port + 1


def bootstrap_reference(slots: list[NodeSlot]) -> tuple[str, str]:
    """Staking address and node id of the seed slot."""
    seed = slots[0]
    return seed.staking_address, seed.identity.node_id


def build_slots(
    pool: IdentityPool,
    work_dir: Union[str, Path],
    settings: "RunSettings",
) -> list[NodeSlot]:
    """Lay out one slot per identity under ``work_dir``."""
    work_dir = Path(work_dir).absolute()
    plugin_dir = work_dir / PLUGINS_DIR_NAME
    base_flags = NodeFlags().with_overrides(settings.node_flags)

    identities = pool.identities()
    seed_http, seed_staking = slot_ports(settings.base_http_port, 0)
    seed_address = f"{settings.host}:{seed_staking}"
    seed_id = identities[0].node_id

    slots = []
    for identity in identities:
        http_port, staking_port = slot_ports(settings.base_http_port, identity.index)
        node_dir = work_dir / NODE_DIR_TEMPLATE.format(number=identity.index + 1)

        if identity.index == 0:
            bootstrap_ip, bootstrap_id = "", ""
        else:
            bootstrap_ip, bootstrap_id = seed_address, seed_id

        overrides = {
            "network_id": settings.network_id,
            "public_ip": settings.host,
            "http_host": settings.host,
            "http_port": http_port,
            "staking_port": staking_port,
            "staking_enabled": True,
            "staking_tls_cert_file": str(node_dir / STAKER_CERT_FILE),
            "staking_tls_key_file": str(node_dir / STAKER_KEY_FILE),
            "bootstrap_ips": bootstrap_ip,
            "bootstrap_ids": bootstrap_id,
            "db_dir": str(node_dir / DB_DIR_NAME),
            "log_dir": str(node_dir / LOGS_DIR_NAME),
            "log_level": settings.log_level,
            "plugin_dir": str(plugin_dir),
        }
        if settings.chain_config_dir:
            overrides["chain_config_dir"] = str(Path(settings.chain_config_dir).absolute())
        if settings.has_custom_vm:
            overrides["whitelisted_subnets"] = settings.whitelisted_subnets

        slots.append(
            NodeSlot(
                identity=identity,
                host=settings.host,
                http_port=http_port,
                staking_port=staking_port,
                bootstrap_ip=bootstrap_ip,
                bootstrap_id=bootstrap_id,
                node_dir=node_dir,
                plugin_dir=plugin_dir,
                flags=replace(base_flags, **overrides),
            )
        )

    return slots
