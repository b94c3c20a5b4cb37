"""
Dictionary shapes for run outcomes.

RunResult.to_dict() is built from ok()/fail() so a finished run, a failed
run and an interrupted run all serialize the same way. Keystore passwords
and private keys never reach error classes, so error details are safe to
include.
"""

import traceback
from typing import Any, Optional

from avasim.commands.errors import AvasimError


def ok(data: Optional[Any] = None, **extras: Any) -> dict[str, Any]:
    """``{"success": True, "data": ...}`` plus any extra keys."""
    result: dict[str, Any] = {"success": True}
    if data is not None:
        result["data"] = data
    result.update(extras)
    return result


def fail(
    message: str,
    *,
    error: Optional[BaseException] = None,
    include_traceback: bool = False,
    **extras: Any,
) -> dict[str, Any]:
    """``{"success": False, "error": message}`` plus the cause, if any.

    The cause's type, code and details are lifted to ``error_type``,
    ``error_code`` and ``error_details``.
    """
    result: dict[str, Any] = {"success": False, "error": message}
    if error is not None:
        cause = format_error(error, include_traceback=include_traceback)
        result["exception"] = cause
        result["error_type"] = cause["type"]
        if "code" in cause:
            result["error_code"] = cause["code"]
        if "details" in cause:
            result["error_details"] = cause["details"]
    result.update(extras)
    return result


def format_error(
    error: BaseException, include_traceback: bool = False
) -> dict[str, Any]:
    if isinstance(error, AvasimError):
        formatted = error.to_dict()
    else:
        formatted = {"type": type(error).__name__, "message": str(error)}
    if include_traceback:
        formatted["traceback"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return formatted
