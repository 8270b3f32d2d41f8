"""
Service Client - HTTP pipe to the DeployR server.

Every DeployR call is a form-encoded POST to ``{endpoint}/deployr/r/<route>``
with ``format=json``. JSON responses arrive wrapped in an envelope:

    {"deployr": {"response": {"success": true, "call": "/r/job/list", ...}}}

This module owns:
- URL construction and the session cookie header
- Transport retries with exponential backoff (connection errors, 5xx)
- Envelope decoding into plain dicts
- The exception hierarchy for remote failures

Usage:
    from deployr_cli.core.services import ServiceClient, ServiceConfig

    with ServiceClient(ServiceConfig(base_url="http://localhost:7400")) as client:
        response = client.call("job/list", data={"openonly": False})
    jobs = response.get("jobs", [])

Design:
    - ServiceClient is the low-level HTTP pipe, nothing job specific
    - Auth failures surface as errors with ``is_auth`` set; the single
      login-and-retry cycle lives in core.auth, not here
    - Exceptions never leak raw requests errors
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import requests

logger = logging.getLogger("services")

API_PREFIX = "/deployr/r/"
AUTH_ERROR_CODE = 401


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ServiceError(Exception):
    """Base error for any remote service problem."""

    is_auth = False


class ServiceUnavailable(ServiceError):
    """Server not reachable - connection error, timeout, or all retries exhausted."""

    def __init__(self, url: str, cause: Optional[Exception] = None):
        self.url = url
        self.cause = cause
        message = f"DeployR server at {url} is unavailable"
        if cause:
            message += f": {cause}"
        super().__init__(message)


class ServiceHttpError(ServiceError):
    """HTTP 4xx error that is not an auth failure."""

    def __init__(self, status: int, body: Optional[str] = None, url: Optional[str] = None):
        self.status = status
        self.body = body
        self.url = url
        truncated = body[:200] if body else ""
        super().__init__(f"HTTP {status}: {truncated}")


class ServiceDecodeError(ServiceError):
    """Response wasn't valid JSON or the DeployR envelope was missing."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class ServiceAuthError(ServiceError):
    """HTTP-level authentication failure (401/403)."""

    is_auth = True

    def __init__(self, url: str, message: str = "Authentication required"):
        self.url = url
        super().__init__(f"Auth error for {url}: {message}")


class DeployRApiError(ServiceError):
    """The server answered with ``success: false``."""

    def __init__(self, call: str, error_code: Optional[int], error: Optional[str]):
        self.call = call
        self.error_code = error_code
        self.error = error or ""
        super().__init__(f"DeployR API error on call \"{call}\" ({error_code}): {self.error}")

    @property
    def is_auth(self) -> bool:
        return self.error_code == AUTH_ERROR_CODE


def _encode_form(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop unset fields, lowercase booleans, always ask for JSON."""
    form = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        form[key] = value
    form["format"] = "json"
    return form


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class ServiceConfig:
    """Connection settings for one DeployR server."""
    base_url: str
    cookie: Optional[str] = None
    timeout_s: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 2.0  # Exponential backoff multiplier
    headers: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# SERVICE CLIENT
# =============================================================================

class ServiceClient:
    """
    Low-level HTTP client for the DeployR API.

    Usage:
        with ServiceClient(config) as client:
            response = client.call("job/submit", data={"code": "print(1)"})
            client.download("project/export", data={"project": pid}, dest=path)
    """

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        self._session.headers.update(config.headers)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        """Release pooled connections held by the underlying requests.Session."""
        self._session.close()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def _full_url(self, route: str) -> str:
        """Build full URL for an API route such as ``job/list``."""
        return self.config.base_url.rstrip("/") + API_PREFIX + route.strip("/")

    def _get_headers(self) -> Dict[str, str]:
        headers = {}
        if self.config.cookie:
            headers["Cookie"] = f"JSESSIONID={self.config.cookie}"
        return headers

    # =========================================================================
    # PUBLIC METHODS
    # =========================================================================

    def call(
        self,
        route: str,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        POST to a DeployR route and return the decoded response body.

        Args:
            route: API route, e.g. "job/list"
            data: Form parameters (``format=json`` is always added)
            files: Multipart attachments, as accepted by requests
            timeout: Request timeout (overrides config)

        Returns:
            The ``deployr.response`` object as a dict

        Raises:
            ServiceUnavailable: Connection failed or timeout after retries
            ServiceAuthError: HTTP 401/403
            ServiceHttpError: Other HTTP 4xx
            ServiceDecodeError: Invalid JSON or missing envelope
            DeployRApiError: ``success`` was false
        """
        resp = self._request(route, data=data, files=files, timeout=timeout)
        return self._decode(route, resp)

    def download(
        self,
        route: str,
        dest: Path,
        data: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        chunk_size: int = 64 * 1024,
    ) -> Path:
        """
        POST to a binary route and stream the body into ``dest``.

        A JSON body on a binary route means the server reported an error
        instead of sending the file, so it is decoded and raised.
        """
        resp = self._request(route, data=data, timeout=timeout, stream=True)
        try:
            content_type = resp.headers.get("Content-Type", "")
            if content_type.startswith("application/json"):
                self._decode(route, resp)
                raise ServiceDecodeError(f"Expected binary content from {route}", resp.url)

            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
        finally:
            resp.close()

        logger.debug(f"Streamed {route} into {dest}")
        return dest

    # =========================================================================
    # CORE REQUEST LOGIC
    # =========================================================================

    def _request(
        self,
        route: str,
        *,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        stream: bool = False,
    ) -> requests.Response:
        """
        Make the HTTP request with transport retry logic.

        Retries on connection errors, timeouts and HTTP 5xx.
        Does NOT retry on HTTP 4xx.
        """
        url = self._full_url(route)
        timeout = timeout or self.config.timeout_s
        headers = self._get_headers()
        form = _encode_form(data)

        last_exception: Optional[Exception] = None

        for attempt in range(self.config.max_retries):
            try:
                logger.debug(f"POST {url}")
                resp = self._session.request(
                    "POST",
                    url,
                    data=form,
                    files=files,
                    headers=headers,
                    timeout=timeout,
                    stream=stream,
                )

                if resp.status_code >= 500:
                    last_exception = ServiceHttpError(resp.status_code, resp.text, url)
                    self._log_retry(attempt, url, f"HTTP {resp.status_code}")
                    continue

                if resp.status_code in (401, 403):
                    raise ServiceAuthError(url, resp.text)

                if resp.status_code >= 400:
                    raise ServiceHttpError(resp.status_code, resp.text, url)

                return resp

            except (requests.ConnectionError, requests.Timeout) as e:
                last_exception = e
                self._log_retry(attempt, url, str(e))
                continue

        logger.error(f"DeployR unavailable after {self.config.max_retries} attempts: {url}")
        raise ServiceUnavailable(url, last_exception)

    def _decode(self, route: str, resp: requests.Response) -> Dict[str, Any]:
        """Unwrap the ``deployr.response`` envelope."""
        try:
            body = resp.json()
        except ValueError as e:
            raise ServiceDecodeError(f"Invalid JSON from {route}: {e}", resp.url)

        try:
            response = body["deployr"]["response"]
        except (KeyError, TypeError):
            raise ServiceDecodeError(f"Missing DeployR envelope in response from {route}", resp.url)

        if not response.get("success", False):
            raise DeployRApiError(
                response.get("call", "/r/" + route),
                response.get("errorCode"),
                response.get("error"),
            )

        return response

    def _log_retry(self, attempt: int, url: str, reason: str):
        """Log retry attempt and sleep."""
        if attempt < self.config.max_retries - 1:
            sleep_time = self.config.backoff_factor ** attempt
            logger.warning(
                f"Attempt {attempt + 1}/{self.config.max_retries} on {url} "
                f"failed ({reason}), retrying in {sleep_time:.1f}s..."
            )
            time.sleep(sleep_time)
