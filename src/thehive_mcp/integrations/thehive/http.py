"""
Low-level HTTP client for TheHive.

This module is responsible for:
- authentication (Bearer API key or basic auth, organisation header)
- building URLs
- making HTTP requests through the confirmation gate
- request/response logging
- basic error handling
"""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from ...core.credentials import Credentials
from ...core.errors import IntegrationError, UpstreamError
from ...core.logging import get_logger
from .elicitation import requires_confirmation


logger = get_logger("thehive_mcp.integrations.thehive.http")

ConfirmFn = Callable[[requests.PreparedRequest], None]


class ElicitationAdapter(HTTPAdapter):
    """
    Transport adapter that asks for confirmation before mutating calls.

    ``confirm`` receives the prepared request and raises
    ``ElicitationDeclined`` to stop it; returning normally lets the request
    go out unchanged.
    """

    def __init__(self, confirm: Optional[ConfirmFn] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._confirm = confirm

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        logger.debug("HTTP request started: %s %s", request.method, request.url)

        if self._confirm is not None and requires_confirmation(request.method or "", request.url or ""):
            buffer_body(request)
            self._confirm(request)

        request._started_at = time.monotonic()  # type: ignore[attr-defined]
        return super().send(request, **kwargs)


def buffer_body(request: requests.PreparedRequest) -> bytes:
    """
    Read a streamed request body into memory and put it back on the request
    so it can be inspected and still be sent.
    """

    body = request.body
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")

    if hasattr(body, "read"):
        data = body.read()
    else:
        data = b"".join(
            chunk if isinstance(chunk, bytes) else str(chunk).encode("utf-8") for chunk in body
        )
    if isinstance(data, str):
        data = data.encode("utf-8")

    request.body = data
    request.headers.pop("Transfer-Encoding", None)
    request.headers["Content-Length"] = str(len(data))
    return data


def log_response(response: requests.Response, *args: Any, **kwargs: Any) -> None:
    """
    ``requests`` response hook: log completion at a level matching the status.
    """

    request = response.request
    started = getattr(request, "_started_at", None)
    if started is not None:
        duration_ms = (time.monotonic() - started) * 1000
    else:
        duration_ms = response.elapsed.total_seconds() * 1000

    status = response.status_code
    if status >= 500:
        log = logger.error
    elif status >= 400:
        log = logger.warning
    else:
        log = logger.info
    log(
        "HTTP request completed: %s %s -> %s (%.0f ms)",
        request.method,
        request.url,
        status,
        duration_ms,
    )


@dataclass
class TheHiveHttpClient:
    """
    Simple HTTP client for TheHive's REST API.
    """

    credentials: Credentials
    confirm: Optional[ConfirmFn] = None
    timeout_seconds: int = 30
    session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.session = requests.Session()
        self.session.headers.update(self._headers())
        if self.credentials.has_api_key:
            self.session.headers["Authorization"] = f"Bearer {self.credentials.api_key}"
        else:
            self.session.auth = (self.credentials.username, self.credentials.password)

        adapter = ElicitationAdapter(confirm=self.confirm)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.hooks["response"].append(log_response)

    @property
    def base_url(self) -> str:
        return self.credentials.base_url

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.credentials.organisation:
            headers["X-Organisation"] = self.credentials.organisation
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an HTTP request to TheHive and return the parsed JSON body.

        Empty bodies (e.g. 204 on delete) return None.
        """

        url = build_url(self.base_url, path)
        logger.debug(
            "TheHive HTTP request",
            extra={"method": method, "url": url, "params": params},
        )

        try:
            response = self.session.request(
                method=method.upper(),
                url=url,
                json=json,
                params=params,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("HTTP request failed: %s %s: %s", method.upper(), url, exc)
            raise IntegrationError(f"TheHive request failed: {exc}") from exc

        handle_thehive_error(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise IntegrationError(
                f"TheHive response did not contain valid JSON (status={response.status_code})"
            ) from exc

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return self.request("GET", path, params=params)

    def post(
        self,
        path: str,
        json: Any,
    ) -> Any:
        return self.request("POST", path, json=json)

    def patch(
        self,
        path: str,
        json: Any,
    ) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def close(self) -> None:
        self.session.close()


def build_url(base_url: str, path: str) -> str:
    """
    Join base URL and path safely.
    """

    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def handle_thehive_error(response: requests.Response) -> None:
    """
    Raise an UpstreamError for non-success responses from TheHive.
    """

    if 200 <= response.status_code < 300:
        return

    try:
        payload = response.json()
    except ValueError:
        payload = {"raw": response.text}

    logger.error(
        "TheHive HTTP error",
        extra={
            "status_code": response.status_code,
            "payload": payload,
        },
    )
    raise UpstreamError(response.status_code, payload)
