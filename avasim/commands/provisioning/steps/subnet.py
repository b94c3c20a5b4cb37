"""
Subnet steps - create the subnet and wait for its creation tx to commit.
"""

from avasim.commands.provisioning.steps.base import BaseStep
from avasim.commands.utils import console


class CreateDomainStep(BaseStep):
    """Submit a subnet controlled by the funded address (threshold 1)."""

    kind = "CreateDomain"
    name = "create subnet"

    def _get_required_fields(self) -> list[str]:
        return ["username", "password", "address"]

    async def execute(self) -> str:
        ctx = self.context
        tx_id = await self.submit(
            ctx.client.create_subnet(ctx.username, ctx.password, ctx.address)
        )
        ctx.subnet_tx_id = tx_id
        console.print(f"[cyan]Submitted subnet creation tx {tx_id}[/cyan]")
        return tx_id


class AwaitDomainCommitStep(BaseStep):
    """Wait for the subnet creation tx; its id becomes the subnet id."""

    kind = "AwaitDomainCommit"
    name = "await subnet commit"

    def _get_required_fields(self) -> list[str]:
        return ["subnet_tx_id"]

    async def execute(self) -> str:
        ctx = self.context
        await self.await_committed(ctx.subnet_tx_id, "subnet creation")
        ctx.subnet_id = ctx.subnet_tx_id
        console.print(f"[green]✓ Subnet created: {ctx.subnet_id}[/green]")

        whitelisted = ctx.whitelisted()
        if ctx.subnet_id not in whitelisted:
            console.print(
                f"[yellow]⚠ Subnet {ctx.subnet_id} is not in the nodes' whitelisted "
                f"subnets ({', '.join(whitelisted) or 'none'}); nodes will not "
                "validate its blockchain[/yellow]"
            )
        return ctx.subnet_id
