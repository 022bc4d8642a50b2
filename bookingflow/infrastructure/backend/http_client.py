from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from bookingflow.application.exceptions import BackendError


SUCCESS_CODE = "S0000"

ERROR_MESSAGES: dict[str, str] = {
    "SYSTEM_ERROR": "The system is having trouble. Please try again later.",
    "S0001": "The system is having trouble. Please try again later.",
    "E0001": "Invalid data.",
    "E0002": "Data not found.",
    "E0003": "Access denied.",
    "E0004": "Your session has expired.",
    "E0005": "Database connection error.",
    "E0006": "Service temporarily unavailable.",
    "E0007": "Data already exists.",
    "E0008": "Data cannot be deleted.",
    "E0009": "Authentication failed.",
    "E0010": "Operation not permitted.",
}

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


def map_error_message(response_code: str | None, original_message: str | None) -> str:
    if response_code and response_code in ERROR_MESSAGES:
        return ERROR_MESSAGES[response_code]
    if original_message and original_message not in ("undefined", "null"):
        return ERROR_MESSAGES.get(original_message, original_message)
    return DEFAULT_ERROR_MESSAGE


class BackendHttpClient:
    """
    Thin JSON client for the booking backend.

    Unwraps the `{responseCode, message, data}` envelope and turns every
    non-success answer into a BackendError. Authentication is delegated to
    `token_provider`.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None] | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._client = httpx.Client(base_url=self._base_url, timeout=timeout, transport=transport)
        self._logger = logging.getLogger(__name__)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None, files: list[tuple[str, tuple[str, bytes, str]]] | None = None) -> Any:
        return self.request("POST", path, json=json, files=files)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        files: list[tuple[str, tuple[str, bytes, str]]] | None = None,
    ) -> Any:
        endpoint = path if path.startswith("/") else f"/{path}"
        headers: dict[str, str] = {}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = self._client.request(method, endpoint, json=json, params=params, files=files, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error(
                "Backend request failed",
                extra={"method": method, "endpoint": endpoint, "error": str(e)},
            )
            raise BackendError("Cannot reach the server. Please check your connection.") from e

        body = _safe_json(resp)

        if resp.status_code >= 400:
            response_code, detail = _extract_error(body)
            message = map_error_message(response_code, detail) if (response_code or detail) else (
                resp.reason_phrase or f"HTTP error {resp.status_code}"
            )
            self._logger.error(
                "Backend returned an error",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "status": resp.status_code,
                    "response_code": response_code,
                    "error": detail,
                },
            )
            raise BackendError(message, status_code=resp.status_code, response_code=response_code, detail=detail)

        if isinstance(body, dict) and body.get("responseCode"):
            response_code = str(body["responseCode"])
            if response_code != SUCCESS_CODE:
                detail = body.get("message") or body.get("error")
                self._logger.error(
                    "Backend rejected the request",
                    extra={"method": method, "endpoint": endpoint, "response_code": response_code, "error": detail},
                )
                raise BackendError(
                    map_error_message(response_code, detail),
                    status_code=resp.status_code,
                    response_code=response_code,
                    detail=detail,
                )
            return body.get("data")

        if isinstance(body, dict) and body.get("error"):
            detail = str(body["error"])
            raise BackendError(map_error_message(None, detail), status_code=resp.status_code, detail=detail)

        return body

    def close(self) -> None:
        self._client.close()


def _safe_json(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def _extract_error(body: Any) -> tuple[str | None, str | None]:
    if not isinstance(body, dict):
        return None, None
    response_code = body.get("responseCode")
    detail = body.get("message") or body.get("error")
    return (str(response_code) if response_code else None), (str(detail) if detail else None)
