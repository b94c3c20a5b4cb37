"""
Validator enrollment - adds every node of the network as a subnet validator.
"""

import time

from avasim.commands.constants import VALIDATOR_END_OFFSET, VALIDATOR_START_OFFSET
from avasim.commands.provisioning.steps.base import BaseStep
from avasim.commands.utils import console


class EnrollValidatorsStep(BaseStep):
    """Add each node as an equal-weight validator of the new subnet.

    Submissions are sequential: each tx must commit before the next node
    is enrolled.
    """

    kind = "EnrollValidators"
    name = "enroll validators"

    def _get_required_fields(self) -> list[str]:
        return ["username", "password", "address", "subnet_id", "node_ids"]

    async def execute(self) -> str:
        ctx = self.context
        for node_id in ctx.node_ids:
            now = int(time.time())
            tx_id = await self.submit(
                ctx.client.add_subnet_validator(
                    ctx.username,
                    ctx.password,
                    ctx.address,
                    subnet_id=ctx.subnet_id,
                    node_id=node_id,
                    weight=ctx.validator_weight,
                    start_time=now + VALIDATOR_START_OFFSET,
                    end_time=now + VALIDATOR_END_OFFSET,
                )
            )
            await self.await_committed(tx_id, "add subnet validator")
            ctx.validator_tx_ids.append(tx_id)
            console.print(f"[green]✓ {node_id} validates {ctx.subnet_id}[/green]")

        return ",".join(ctx.validator_tx_ids)
