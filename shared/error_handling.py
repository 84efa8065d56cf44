"""Standardized response envelopes and exit codes for builder commands"""

import traceback
from typing import Any, Dict, Optional


def create_error_response(
    code: str,
    message: str,
    *,
    hint: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    exception: Optional[Exception] = None,
) -> Dict[str, Any]:
    """
    Create standardized failure envelope with optional traceback.

    Args:
        code: Stable machine-readable error code
        message: User-friendly error message
        hint: Optional suggestion for fixing the problem
        details: Optional structured context
        exception: Optional exception to include traceback from

    Returns:
        Envelope dict ``{ok: False, code, message, hint?, details?}``
    """
    error_data: Dict[str, Any] = {
        "ok": False,
        "code": code,
        "message": message,
    }
    if hint:
        error_data["hint"] = hint
    if details:
        error_data["details"] = details

    if exception:
        error_data["traceback"] = "".join(
            traceback.format_exception(type(exception), exception, exception.__traceback__)
        )

    return error_data


def create_success_response(response_type: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Create standardized success envelope.

    Args:
        response_type: ``<component>.<action>`` tag, e.g. ``builder.add-node``
        payload: Operation result

    Returns:
        Envelope dict ``{ok: True, type, payload}``
    """
    return {"ok": True, "type": response_type, "payload": payload or {}}


def exit_code_for(code: str) -> int:
    """Map an error code to the process exit status."""
    if code.startswith("AUTH_"):
        return 2
    if code.startswith("VALIDATION_") or code == "INVALID_INPUT":
        return 3
    if code.startswith("NETWORK_") or code == "TIMEOUT":
        return 4
    if code.endswith("_NOT_FOUND") or code == "NOT_FOUND":
        return 5
    return 1
