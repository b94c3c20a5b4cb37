"""
Blockchain steps - deploy the custom VM chain and wait for it to validate.
"""

from pathlib import Path
from typing import Optional

from avasim.commands.constants import (
    BLOCKCHAIN_STATUS_VALIDATING,
    ERROR_FILE_NOT_FOUND,
    FIELD_ID,
    FIELD_SUBNET_ID,
)
from avasim.commands.errors import (
    FatalSetupError,
    RemoteRejectionError,
    TransientNetworkError,
)
from avasim.commands.provisioning.steps.base import BaseStep
from avasim.commands.retry import RetryConfig, poll_until, retry_async_call
from avasim.commands.utils import console


def read_genesis(path: str) -> bytes:
    """Read the VM genesis file.

    Raises:
        FatalSetupError: if the file does not exist or cannot be read
    """
    genesis_file = Path(path)
    try:
        return genesis_file.read_bytes()
    except FileNotFoundError as e:
        raise FatalSetupError(ERROR_FILE_NOT_FOUND.format(path=path), path=path) from e
    except OSError as e:
        raise FatalSetupError(f"Cannot read genesis file {path}: {e}", path=path) from e


class DeployWorkloadStep(BaseStep):
    """Create a blockchain running the custom VM on the new subnet."""

    kind = "DeployWorkload"
    name = "create blockchain"

    def _get_required_fields(self) -> list[str]:
        return ["username", "password", "address", "subnet_id", "vm_id", "vm_name", "genesis_path"]

    async def execute(self) -> str:
        ctx = self.context
        genesis = read_genesis(ctx.genesis_path)
        tx_id = await self.submit(
            ctx.client.create_blockchain(
                ctx.username,
                ctx.password,
                ctx.address,
                subnet_id=ctx.subnet_id,
                vm_id=ctx.vm_id,
                name=ctx.vm_name,
                genesis=genesis,
            )
        )
        ctx.blockchain_tx_id = tx_id
        await self.await_committed(tx_id, "create blockchain")
        return tx_id


class ConfirmActivationStep(BaseStep):
    """Find the new chain and wait until the subnet validates it."""

    kind = "ConfirmActivation"
    name = "confirm activation"

    def _get_required_fields(self) -> list[str]:
        return ["subnet_id"]

    async def _find_blockchain(self) -> Optional[str]:
        blockchains = await self.submit(self.context.client.get_blockchains())
        for blockchain in blockchains:
            if blockchain.get(FIELD_SUBNET_ID) == self.context.subnet_id:
                return blockchain.get(FIELD_ID)
        return None

    async def execute(self) -> str:
        ctx = self.context
        blockchain_id = await retry_async_call(
            self._find_blockchain,
            config=RetryConfig(exceptions=(TransientNetworkError,)),
            scope=ctx.scope,
        )
        if not blockchain_id:
            raise RemoteRejectionError(
                f"could not find blockchain on subnet {ctx.subnet_id}",
                method="platform.getBlockchains",
            )
        ctx.blockchain_id = blockchain_id
        console.print(f"[green]✓ blockchain created {blockchain_id}[/green]")

        async def check() -> bool:
            status = await ctx.client.get_blockchain_status(blockchain_id)
            return status == BLOCKCHAIN_STATUS_VALIDATING

        await poll_until(
            check,
            scope=ctx.scope,
            interval=ctx.activation_poll_interval,
            waiting_message="waiting for validating status",
            transient=(TransientNetworkError, RemoteRejectionError),
        )
        console.print(f"[green]✓ validating blockchain {blockchain_id}[/green]")
        return blockchain_id
