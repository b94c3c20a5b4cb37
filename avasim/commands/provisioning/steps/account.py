"""
Account steps - keystore user creation and funding via the pre-funded key.
"""

from avasim.commands.errors import RemoteRejectionError, TransientNetworkError
from avasim.commands.provisioning.steps.base import BaseStep
from avasim.commands.retry import RetryConfig, retry_async_call
from avasim.commands.utils import console

# A freshly imported key can take a moment to show its balance
BALANCE_RETRY_CONFIG = RetryConfig(
    max_attempts=5, delay=1.0, backoff=1.5, exceptions=(TransientNetworkError,)
)


class CreateAccountStep(BaseStep):
    """Create the keystore user that signs every platform tx."""

    kind = "CreateAccount"
    name = "create account"

    def _get_required_fields(self) -> list[str]:
        return ["username", "password"]

    async def execute(self) -> str:
        ctx = self.context
        console.print(f"[cyan]Creating keystore user '{ctx.username}'...[/cyan]")
        created = await self.submit(ctx.client.create_user(ctx.username, ctx.password))
        if not created:
            raise RemoteRejectionError(
                f"could not create user '{ctx.username}'",
                method="keystore.createUser",
            )
        console.print(f"[green]✓ Created user '{ctx.username}'[/green]")
        return ctx.username


class FundAccountStep(BaseStep):
    """Import the pre-funded key into the user and check its balance."""

    kind = "FundAccount"
    name = "fund account"

    def _get_required_fields(self) -> list[str]:
        return ["username", "password", "private_key"]

    async def _get_balance(self, address: str) -> int:
        return await self.submit(self.context.client.get_balance(address))

    async def execute(self) -> str:
        ctx = self.context
        address = await self.submit(
            ctx.client.import_key(ctx.username, ctx.password, ctx.private_key)
        )
        ctx.address = address

        balance = await retry_async_call(
            self._get_balance,
            address,
            config=BALANCE_RETRY_CONFIG,
            scope=ctx.scope,
        )
        ctx.balance = balance
        console.print(f"[cyan]{address} Balance {balance}[/cyan]")
        if balance <= 0:
            raise RemoteRejectionError(
                f"funded address {address} has no balance",
                method="platform.getBalance",
            )
        console.print(f"[green]✓ Funded account {address}[/green]")
        return address
