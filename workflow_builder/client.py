"""
HTTP client for the remote workflow-creation service.

Responses are wrapped as ``{success, data, errCode, errMsg}``; failures are
mapped onto builder errors so the command boundary can render them. No
retries are attempted: a failed commit is safe to run again.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from shared.config import config
from shared.logger import get_logger
from workflow_builder.errors import (
    ApiError,
    NetworkError,
    RequestTimeoutError,
    WorkflowBuilderError,
)
from workflow_builder.schema.payloads import WorkflowCreateRequest, WorkflowCreateResponse

logger = get_logger(__name__)

CREATE_WORKFLOW_PATH = "/v1/cli/workflow"
USER_AGENT = "workflow-builder/0.1.0"


class WorkflowApiClient:
    """Thin synchronous wrapper over ``httpx.Client``."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"User-Agent": USER_AGENT}
        if api_key:
            headers["X-API-Key"] = api_key
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "WorkflowApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def create_workflow(self, request: WorkflowCreateRequest) -> WorkflowCreateResponse:
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = self._request("POST", CREATE_WORKFLOW_PATH, json=body)
        try:
            return WorkflowCreateResponse.model_validate(data)
        except ValidationError as exc:
            raise ApiError(
                "Workflow service returned an unexpected response",
                details={"data": data, "error": str(exc)},
            ) from exc

    def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug(f"API Request: {method} {path}")
        try:
            response = self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError("Request timed out", hint="Try again later") from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Cannot connect to workflow service at {self.base_url}",
                hint="Check WORKFLOW_API_ENDPOINT",
                details={"error": str(exc)},
            ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error or not payload.get("success"):
            error = map_api_error(response.status_code, payload)
            logger.error(f"API {method} {path} failed: HTTP {response.status_code} {error.code}")
            raise error

        return payload.get("data") or {}


def map_api_error(status: int, payload: Dict[str, Any]) -> WorkflowBuilderError:
    err_code = payload.get("errCode") or "API_ERROR"
    err_msg = payload.get("errMsg") or f"Workflow service error (HTTP {status})"
    details = {"status": status}

    if status in (401, 403):
        return ApiError(err_msg, code="AUTH_INVALID", hint="Check WORKFLOW_API_KEY", details=details)
    if status == 404:
        return ApiError(err_msg, code="NOT_FOUND", hint="Check WORKFLOW_API_ENDPOINT", details=details)
    if status == 409:
        return ApiError(err_msg, code="CONFLICT", hint="Refresh and try again", details=details)
    if status == 422:
        return ApiError(err_msg, code="INVALID_INPUT", hint="Check input format", details=details)
    if status >= 500:
        return ApiError(err_msg, code="API_ERROR", hint="Try again later", details=details)
    return ApiError(err_msg, code=err_code, details=details)


def get_workflow_client() -> WorkflowApiClient:
    """Build a client from the global configuration."""
    if not config.is_api_key_configured:
        logger.warning("WORKFLOW_API_KEY is not set; committing without credentials")
    return WorkflowApiClient(
        config.workflow_api_endpoint,
        api_key=config.workflow_api_key,
        timeout=config.workflow_api_timeout,
    )
