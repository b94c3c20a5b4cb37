"""
Provisioning workflow - the ordered subnet/validator/blockchain state machine.

The workflow blocks until the network readiness signal is set, then runs its
steps strictly in order against one reference node. A step never starts
before its predecessor committed; the first failure aborts the workflow.
"""

from typing import Optional

from avasim.commands.errors import RemoteRejectionError
from avasim.commands.provisioning.context import ProvisioningContext
from avasim.commands.provisioning.steps import STEP_SEQUENCE, BaseStep, StepRecord
from avasim.commands.provisioning.steps.base import STATUS_COMMITTED, STATUS_FAILED
from avasim.commands.readiness import ReadinessSignal
from avasim.commands.utils import console


class ProvisioningWorkflow:
    """Runs the provisioning steps once the network is ready."""

    def __init__(
        self,
        context: ProvisioningContext,
        signal: ReadinessSignal,
        steps: Optional[tuple[type[BaseStep], ...]] = None,
    ):
        self.context = context
        self.signal = signal
        self.steps = steps or STEP_SEQUENCE
        self.records: list[StepRecord] = []

    @property
    def subnet_id(self) -> Optional[str]:
        return self.context.subnet_id

    @property
    def blockchain_id(self) -> Optional[str]:
        return self.context.blockchain_id

    @property
    def completed(self) -> bool:
        return len(self.records) == len(self.steps) and all(
            r.status == STATUS_COMMITTED for r in self.records
        )

    async def execute(self) -> str:
        """Wait for readiness, then run every step in order.

        Returns:
            The id of the deployed blockchain

        Raises:
            RemoteRejectionError: naming the step whose submission was rejected
            CancellationError: if the run is cancelled at any point
        """
        scope = self.context.scope
        await self.signal.wait(scope)

        total = len(self.steps)
        console.print(f"\n[bold cyan]🚀 Provisioning subnet ({total} steps)[/bold cyan]")

        for number, step_class in enumerate(self.steps, start=1):
            scope.raise_if_cancelled()
            step = step_class(self.context)
            record = StepRecord(kind=step.kind, name=step.name)
            self.records.append(record)
            console.print(f"\n[bold blue]Step {number}/{total}: {step.name}[/bold blue]")

            try:
                record.reference_id = await step.execute()
            except RemoteRejectionError as e:
                record.status = STATUS_FAILED
                raise e.for_step(step.name) from e
            except BaseException:
                record.status = STATUS_FAILED
                raise

            record.status = STATUS_COMMITTED

        console.print(
            f"\n[bold green]✓ Blockchain {self.blockchain_id} is validating on subnet {self.subnet_id}[/bold green]"
        )
        return self.blockchain_id
