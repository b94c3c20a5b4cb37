"""
Provisioning steps, in the order the workflow runs them.
"""

from avasim.commands.provisioning.steps.account import (
    CreateAccountStep,
    FundAccountStep,
)
from avasim.commands.provisioning.steps.base import BaseStep, StepRecord
from avasim.commands.provisioning.steps.blockchain import (
    ConfirmActivationStep,
    DeployWorkloadStep,
)
from avasim.commands.provisioning.steps.subnet import (
    AwaitDomainCommitStep,
    CreateDomainStep,
)
from avasim.commands.provisioning.steps.validators import EnrollValidatorsStep

STEP_SEQUENCE: tuple[type[BaseStep], ...] = (
    CreateAccountStep,
    FundAccountStep,
    CreateDomainStep,
    AwaitDomainCommitStep,
    EnrollValidatorsStep,
    DeployWorkloadStep,
    ConfirmActivationStep,
)

__all__ = [
    "BaseStep",
    "StepRecord",
    "STEP_SEQUENCE",
    "CreateAccountStep",
    "FundAccountStep",
    "CreateDomainStep",
    "AwaitDomainCommitStep",
    "EnrollValidatorsStep",
    "DeployWorkloadStep",
    "ConfirmActivationStep",
]
