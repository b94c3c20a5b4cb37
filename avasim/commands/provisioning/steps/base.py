"""
Base step class for all provisioning steps.
"""

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Optional

from avasim.commands.constants import (
    METHOD_GET_TX_STATUS,
    TX_STATUS_ABORTED,
    TX_STATUS_COMMITTED,
    TX_STATUS_DROPPED,
)
from avasim.commands.errors import (
    ConfigurationError,
    RemoteRejectionError,
    TransientNetworkError,
)
from avasim.commands.provisioning.context import ProvisioningContext
from avasim.commands.retry import poll_until
from avasim.commands.utils import console

STATUS_PENDING = "pending"
STATUS_COMMITTED = "committed"
STATUS_FAILED = "failed"

# Platform tx statuses that end the commit wait
TERMINAL_TX_STATUSES = (TX_STATUS_COMMITTED, TX_STATUS_DROPPED, TX_STATUS_ABORTED)


@dataclass
class StepRecord:
    """Outcome of one step. Terminal once committed or failed."""

    kind: str
    name: str
    reference_id: Optional[str] = None
    status: str = STATUS_PENDING

    @property
    def terminal(self) -> bool:
        return self.status in (STATUS_COMMITTED, STATUS_FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "reference_id": self.reference_id,
            "status": self.status,
        }


class BaseStep:
    """Base class for all provisioning steps."""

    kind = "Step"
    name = "step"

    def __init__(self, context: ProvisioningContext):
        self.context = context
        self._validate_required_fields()

    def _get_required_fields(self) -> list[str]:
        """
        Define which context fields must be set before this step runs.
        Override this method in subclasses to specify required fields.

        Returns:
            List of required context attribute names
        """
        return []

    def _validate_required_fields(self) -> None:
        """
        Validate that all required context fields are present.
        Raises ConfigurationError if any required fields are missing.
        """
        required_fields = self._get_required_fields()
        missing_fields = [
            f for f in required_fields if getattr(self.context, f, None) in (None, "")
        ]
        if missing_fields:
            raise ConfigurationError(
                f"Step '{self.name}' is missing required fields: {', '.join(missing_fields)}. "
                f"Required fields: {', '.join(required_fields)}",
                field=missing_fields[0],
            )

    async def submit(self, call: Awaitable[Any]) -> Any:
        """Await a submission; it is abandoned if the run is cancelled."""
        return await self.context.scope.guard(call)

    async def await_committed(self, tx_id: str, what: str) -> None:
        """Poll the tx status until Committed.

        Raises:
            RemoteRejectionError: if the tx is dropped or aborted
            CancellationError: if the run is cancelled while waiting
        """
        client = self.context.client

        async def check() -> Optional[str]:
            status = await client.get_tx_status(tx_id)
            if status in TERMINAL_TX_STATUSES:
                return status
            return None

        status = await poll_until(
            check,
            scope=self.context.scope,
            interval=self.context.tx_poll_interval,
            waiting_message=f"waiting for {what} tx to be accepted {tx_id}",
            # Status queries that error out are retried like unreachable nodes
            transient=(TransientNetworkError, RemoteRejectionError),
        )
        if status != TX_STATUS_COMMITTED:
            raise RemoteRejectionError(
                f"{what} tx {tx_id} was {status.lower()}", method=METHOD_GET_TX_STATUS
            )
        console.print(f"[green]✓ {what} tx committed: {tx_id}[/green]")

    async def execute(self) -> Optional[str]:
        """
        Run the step.

        Returns:
            The reference id recorded for this step (tx, address, subnet or chain id)
        """
        raise NotImplementedError
