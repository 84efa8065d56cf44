"""
Shared exception hierarchy for the workflow builder.

Every error carries a stable machine-readable ``code`` so the command
boundary can render it as a failure envelope without inspecting the
exception type.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class WorkflowBuilderError(Exception):
    """Base class for all builder related errors."""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.hint = hint
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.hint:
            data["hint"] = self.hint
        if self.details:
            data["details"] = self.details
        return data


class BuilderNotStartedError(WorkflowBuilderError):
    """Raised when a command needs a session but none is current."""

    code = "BUILDER_NOT_STARTED"


class BuilderAlreadyStartedError(WorkflowBuilderError):
    """Raised when starting a session while another one is still open."""

    code = "BUILDER_ALREADY_STARTED"


class InvalidInputError(WorkflowBuilderError):
    """Raised for malformed node, patch or connection payloads."""

    code = "INVALID_INPUT"


class DuplicateNodeError(WorkflowBuilderError):
    code = "DUPLICATE_NODE_ID"


class NodeNotFoundError(WorkflowBuilderError):
    code = "NODE_NOT_FOUND"


class EdgeNotFoundError(WorkflowBuilderError):
    code = "EDGE_NOT_FOUND"


class InvalidStateError(WorkflowBuilderError):
    """Raised when an operation is not allowed in the session's current state."""

    code = "INVALID_STATE"


class ValidationRequiredError(WorkflowBuilderError):
    """Raised by the commit guard when the session has not been validated."""

    code = "VALIDATION_REQUIRED"


class SessionNotFoundError(WorkflowBuilderError):
    code = "SESSION_NOT_FOUND"


class StoreUnavailableError(WorkflowBuilderError):
    """Raised when the session store cannot be read or written."""

    code = "STORE_UNAVAILABLE"


class StaleSessionError(WorkflowBuilderError):
    """Raised when a save would overwrite a newer revision of the session."""

    code = "CONFLICT"


class ApiError(WorkflowBuilderError):
    """Raised when the workflow service answers with an error."""

    code = "API_ERROR"


class NetworkError(WorkflowBuilderError):
    code = "NETWORK_ERROR"


class RequestTimeoutError(WorkflowBuilderError):
    code = "TIMEOUT"
