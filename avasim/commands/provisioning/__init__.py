"""
Provisioning package - subnet, validator and blockchain setup on a ready network.
"""

from avasim.commands.provisioning.context import ProvisioningContext
from avasim.commands.provisioning.steps import STEP_SEQUENCE, StepRecord
from avasim.commands.provisioning.workflow import ProvisioningWorkflow

__all__ = [
    "ProvisioningContext",
    "ProvisioningWorkflow",
    "StepRecord",
    "STEP_SEQUENCE",
]
