"""
Shared state of one provisioning run.

Inputs are fixed when the workflow is built; outputs (funded address,
subnet id, validator txs, blockchain id) are filled in by the steps as they
commit, in step order.
"""

from dataclasses import dataclass, field
from typing import Optional

from avasim.commands.cancellation import CancellationScope
from avasim.commands.client import NodeClient
from avasim.commands.config import RunSettings
from avasim.commands.constants import FUNDED_PRIVATE_KEY


@dataclass
class ProvisioningContext:
    client: NodeClient
    scope: CancellationScope
    node_ids: list[str]
    genesis_path: Optional[str]
    vm_id: str
    vm_name: str
    whitelisted_subnets: str
    username: str
    password: str = field(repr=False)
    validator_weight: int = 30
    tx_poll_interval: float = 1.0
    activation_poll_interval: float = 15.0
    private_key: str = field(default=FUNDED_PRIVATE_KEY, repr=False)

    # Filled in as steps commit
    address: Optional[str] = None
    balance: Optional[int] = None
    subnet_tx_id: Optional[str] = None
    subnet_id: Optional[str] = None
    validator_tx_ids: list[str] = field(default_factory=list)
    blockchain_tx_id: Optional[str] = None
    blockchain_id: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: RunSettings,
        client: NodeClient,
        scope: CancellationScope,
        node_ids: list[str],
    ) -> "ProvisioningContext":
        return cls(
            client=client,
            scope=scope,
            node_ids=list(node_ids),
            genesis_path=settings.vm_genesis,
            vm_id=settings.vm_id,
            vm_name=settings.vm_name,
            whitelisted_subnets=settings.whitelisted_subnets,
            username=settings.username,
            password=settings.password,
            validator_weight=settings.validator_weight,
            tx_poll_interval=settings.tx_poll_interval,
            activation_poll_interval=settings.activation_poll_interval,
        )

    def whitelisted(self) -> list[str]:
        return [s.strip() for s in self.whitelisted_subnets.split(",") if s.strip()]
