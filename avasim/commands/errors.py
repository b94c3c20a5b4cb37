"""
Typed error classes for avasim.

This module provides the error taxonomy of a network run:
- AvasimError: Base exception for all avasim errors
- FatalSetupError: Problems detected before any node process starts
  (IdentityError, ConfigurationError)
- SupervisionError: A node process exited while the run was not cancelling
- TransientNetworkError: A node could not be reached; always retried
- RemoteRejectionError: A submission to the platform API returned an error
- CancellationError: A loop observed cancellation; the expected shutdown path
"""

from typing import Any, Optional


class AvasimError(Exception):
    """Base exception class for all avasim errors.

    Attributes:
        message: Human-readable error message
        code: Optional error code for programmatic handling
        details: Optional dictionary with additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for serialization."""
        result: dict[str, Any] = {
            "type": self.__class__.__name__,
            "message": self.message,
        }
        if self.code:
            result["code"] = self.code
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class FatalSetupError(AvasimError):
    """Errors that abort a run before any node process is spawned.

    Raised when:
    - A required input file (VM binary, genesis, node binary) is missing
    - The workspace cannot be prepared
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.path = path
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, code=code or "FATAL_SETUP", details=details)


class IdentityError(FatalSetupError):
    """Raised when a staking certificate cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        index: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.index = index
        details = details or {}
        if index is not None:
            details["index"] = index
        super().__init__(message, path=path, code="IDENTITY_INVALID", details=details)


class ConfigurationError(FatalSetupError):
    """Configuration-related errors.

    Raised when:
    - The run configuration file is missing or malformed
    - A configuration value has the wrong type or an unknown key
    - Command line options conflict with each other
    """

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.config_file = config_file
        self.field = field
        details = details or {}
        if config_file:
            details["config_file"] = config_file
        if field:
            details["field"] = field
        super().__init__(
            message, path=config_file, code="CONFIGURATION_ERROR", details=details
        )


class SupervisionError(AvasimError):
    """Raised when a node process exits while the run is not cancelling."""

    def __init__(
        self,
        message: str,
        node: Optional[str] = None,
        exit_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.node = node
        self.exit_code = exit_code
        details = details or {}
        if node:
            details["node"] = node
        if exit_code is not None:
            details["exit_code"] = exit_code
        super().__init__(message, code="NODE_EXITED", details=details)


class TransientNetworkError(AvasimError):
    """Raised when a node's API cannot be reached.

    Poll loops treat this as "not ready yet" and retry.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.url = url
        details = details or {}
        if url:
            details["url"] = url
        super().__init__(message, code="NODE_UNREACHABLE", details=details)


class RemoteRejectionError(AvasimError):
    """Raised when the platform API rejects a call.

    Submission rejections are fatal and abort the provisioning workflow.
    """

    def __init__(
        self,
        message: str,
        step_name: Optional[str] = None,
        method: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.step_name = step_name
        self.method = method
        details = details or {}
        if step_name:
            details["step_name"] = step_name
        if method:
            details["method"] = method
        super().__init__(message, code="REMOTE_REJECTED", details=details)

    def for_step(self, step_name: str) -> "RemoteRejectionError":
        """Return a copy of this error attributed to a provisioning step."""
        details = {k: v for k, v in self.details.items() if k != "step_name"}
        return RemoteRejectionError(
            f"Step '{step_name}' failed: {self.message}",
            step_name=step_name,
            method=self.method,
            details=details,
        )


class CancellationError(AvasimError):
    """Raised by any loop that observes cancellation.

    This is the expected shutdown path and is never reported as a crash.
    """

    def __init__(
        self,
        message: str = "Run cancelled",
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.reason = reason
        details = details or {}
        if reason:
            details["reason"] = reason
        super().__init__(message, code="CANCELLED", details=details)


__all__ = [
    "AvasimError",
    "FatalSetupError",
    "IdentityError",
    "ConfigurationError",
    "SupervisionError",
    "TransientNetworkError",
    "RemoteRejectionError",
    "CancellationError",
]
