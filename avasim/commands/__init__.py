"""
Commands module - All available CLI commands.
"""

from avasim.commands.errors import (
    AvasimError,
    CancellationError,
    ConfigurationError,
    FatalSetupError,
    IdentityError,
    RemoteRejectionError,
    SupervisionError,
    TransientNetworkError,
)
from avasim.commands.ids import ids
from avasim.commands.run import create_sample, run

__all__ = [
    # Commands
    "create_sample",
    "ids",
    "run",
    # Error classes
    "AvasimError",
    "CancellationError",
    "ConfigurationError",
    "FatalSetupError",
    "IdentityError",
    "RemoteRejectionError",
    "SupervisionError",
    "TransientNetworkError",
]
