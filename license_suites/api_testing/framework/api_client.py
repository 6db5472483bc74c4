"""
================================================================================
License API Client with Allure Integration
================================================================================

Typed wrapper around the account-management API:
    - Token info / rotation
    - License listing and lookup
    - License assign / revoke
    - Moving licenses between teams

Every call returns an ``ApiResponse`` carrying the status code, the
best-effort parsed body and the raw body text. Non-2xx statuses are never
raised, so negative tests assert on the status code directly.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import allure
import httpx
from allure_commons.types import AttachmentType
from loguru import logger

from .config_loader import Settings
from .models import (
    AssignLicenseBody,
    AssignLicenseRequest,
    ChangeTeamRequest,
    ChangeTeamResult,
    License,
    TokenInfo,
    parse_license_list,
)


# Maximum response length to include in Allure reports
MAX_RESPONSE_LENGTH = 3000

API_KEY_HEADER = "X-Api-Key"
CUSTOMER_CODE_HEADER = "X-Customer-Code"

SENSITIVE_HEADERS = {"authorization", "x-api-key", "cookie", "set-cookie"}
SENSITIVE_BODY_KEYS = ["password", "secret", "token", "api_key", "apikey", "authorization"]

T = TypeVar("T")


class ApiClientError(Exception):
    """Raised when the client is misused (e.g. outside its context manager)."""
    pass


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    """
    Uniform result of an API call.

    Attributes:
        status_code: HTTP status code
        body: Parsed body, or None if the body was empty or did not parse
        raw_body: Raw response text, always available for failure messages
    """
    status_code: int
    body: Optional[T]
    raw_body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _parse_json(text: str) -> Any:
    return json.loads(text)


def _parse_text(text: str) -> str:
    return text


class ApiClient:
    """
    License API client with built-in resilience and reporting.

    Features:
        - X-Api-Key / X-Customer-Code applied to every authenticated call,
          with per-call overrides for negative tests
        - Retry with exponential backoff on network errors
        - Rate limit (429) handling with Retry-After parsing
        - Full Allure reporting with request/response details and cURL

    Usage:
        >>> with ApiClient(settings) as client:
        ...     response = client.get_licenses(team_id=settings.source_team_id)
        ...     assert response.status_code == 200
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize API client.

        Args:
            settings: Resolved configuration for this run.
            transport: Optional httpx transport (unit tests use MockTransport).
        """
        self.settings = settings
        self.base_url = settings.base_url
        self.timeout = settings.timeout
        self.retry_count = max(1, settings.retry_count)
        self.retry_backoff = settings.retry_backoff
        self.retry_max_wait = settings.retry_max_wait

        self._transport = transport
        self.session: Optional[httpx.Client] = None

    def __enter__(self) -> "ApiClient":
        """Enter context manager - open the connection pool."""
        self.session = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - release the connection pool."""
        self.close()

    def close(self) -> None:
        if self.session:
            self.session.close()
            self.session = None

    # =========================================================================
    # Token
    # =========================================================================

    def get_token(self) -> ApiResponse[TokenInfo]:
        """``GET /token`` - details of the current API key."""
        return self._call("GET", "/token", parser=lambda t: TokenInfo.from_dict(_parse_json(t)))

    def get_token_without_auth(self) -> ApiResponse[str]:
        """``GET /token`` with no authentication headers at all."""
        return self._call("GET", "/token", parser=_parse_text, authenticate=False)

    def rotate_token(self) -> ApiResponse[str]:
        """``POST /token/rotate`` - invalidates the current key and returns a new one."""
        return self._call("POST", "/token/rotate", parser=_parse_text)

    # =========================================================================
    # Licenses
    # =========================================================================

    def get_licenses(
        self,
        assignment_status: Optional[str] = None,
        team_id: Optional[int] = None,
    ) -> ApiResponse[List[License]]:
        """
        ``GET /customer/licenses``.

        Args:
            assignment_status: Optional filter, e.g. "UNASSIGNED"
            team_id: Optional owning-team filter
        """
        params: Dict[str, Any] = {}
        if assignment_status is not None:
            params["assignmentStatus"] = assignment_status
        if team_id is not None:
            params["teamId"] = team_id
        return self._call(
            "GET",
            "/customer/licenses",
            parser=lambda t: parse_license_list(_parse_json(t)),
            params=params or None,
        )

    def get_license_by_id(self, license_id: str) -> ApiResponse[License]:
        """``GET /customer/licenses/{licenseId}``."""
        return self._call(
            "GET",
            f"/customer/licenses/{license_id}",
            parser=lambda t: License.from_dict(_parse_json(t)),
        )

    def get_team_licenses(self, team_id: int) -> ApiResponse[List[License]]:
        """``GET /customer/teams/{teamId}/licenses``."""
        return self._call(
            "GET",
            f"/customer/teams/{team_id}/licenses",
            parser=lambda t: parse_license_list(_parse_json(t)),
        )

    def assign_license(self, request: AssignLicenseRequest) -> ApiResponse[License]:
        """
        ``POST /customer/licenses/assign``.

        A successful assign normally answers 200 with an empty body, so
        ``body`` is usually None; callers pre-capture the license id.
        """
        return self._call(
            "POST",
            "/customer/licenses/assign",
            parser=lambda t: License.from_dict(_parse_json(t)),
            json_body=request.to_payload(),
        )

    def assign_license_raw(
        self,
        body: Union[str, AssignLicenseBody],
        api_key: Optional[str] = None,
        customer_code: Optional[str] = None,
    ) -> ApiResponse[str]:
        """
        ``POST /customer/licenses/assign`` with an arbitrary body.

        Args:
            body: Serialized JSON, or an ``AssignLicenseBody`` builder
            api_key: Replaces the organization key; "" sends an empty header
            customer_code: Replaces the configured customer code
        """
        return self._post_raw("/customer/licenses/assign", body, api_key, customer_code)

    def revoke_license(self, license_id: str) -> ApiResponse[str]:
        """
        ``POST /customer/licenses/revoke?licenseId={id}``.

        Returns 400 RECENTLY_ASSIGNED_LICENSE_IS_NOT_AVAILABLE_FOR_REVOKE while
        the license is inside its post-assignment cooldown.
        """
        return self._call(
            "POST",
            "/customer/licenses/revoke",
            parser=_parse_text,
            params={"licenseId": license_id},
        )

    # =========================================================================
    # Teams
    # =========================================================================

    def change_licenses_team(self, request: ChangeTeamRequest) -> ApiResponse[ChangeTeamResult]:
        """``POST /customer/changeLicensesTeam``."""
        return self._call(
            "POST",
            "/customer/changeLicensesTeam",
            parser=lambda t: ChangeTeamResult.from_dict(_parse_json(t)),
            json_body=request.to_payload(),
        )

    def change_licenses_team_raw(
        self,
        body: str,
        api_key: Optional[str] = None,
        customer_code: Optional[str] = None,
    ) -> ApiResponse[str]:
        """``POST /customer/changeLicensesTeam`` with an arbitrary body."""
        return self._post_raw("/customer/changeLicensesTeam", body, api_key, customer_code)

    # =========================================================================
    # HTTP helpers
    # =========================================================================

    def _post_raw(
        self,
        path: str,
        body: Union[str, AssignLicenseBody],
        api_key: Optional[str],
        customer_code: Optional[str],
    ) -> ApiResponse[str]:
        content = body.to_json() if isinstance(body, AssignLicenseBody) else body
        return self._call(
            "POST",
            path,
            parser=_parse_text,
            content=content,
            api_key=api_key,
            customer_code=customer_code,
        )

    def _auth_headers(
        self,
        api_key: Optional[str] = None,
        customer_code: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Authentication headers for one request.

        None means "use the configured value"; an empty string is sent as-is
        to simulate a missing credential.
        """
        return {
            API_KEY_HEADER: self.settings.org_admin_key if api_key is None else api_key,
            CUSTOMER_CODE_HEADER: (
                self.settings.customer_code if customer_code is None else customer_code
            ),
        }

    def _call(
        self,
        method: str,
        path: str,
        parser: Callable[[str], T],
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        content: Optional[str] = None,
        authenticate: bool = True,
        api_key: Optional[str] = None,
        customer_code: Optional[str] = None,
    ) -> ApiResponse[T]:
        headers: Dict[str, str] = {}
        if authenticate:
            headers.update(self._auth_headers(api_key, customer_code))

        kwargs: Dict[str, Any] = {"headers": headers}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body
        elif content is not None:
            headers["Content-Type"] = "application/json"
            kwargs["content"] = content

        response = self.request(method, path, **kwargs)
        raw_body = response.text or ""

        body: Optional[T] = None
        if raw_body.strip():
            try:
                body = parser(raw_body)
            except (ValueError, TypeError, AttributeError) as e:
                logger.debug(f"Could not parse {method} {path} body: {e}")

        return ApiResponse(status_code=response.status_code, body=body, raw_body=raw_body)

    def request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Execute HTTP request with automatic retry and Allure logging.

        Returns:
            httpx.Response object; a 429 that outlasts all retries is returned
            like any other status.

        Raises:
            ApiClientError: When used outside the context manager
            httpx.HTTPError: When network retries are exhausted
        """
        if self.session is None:
            raise ApiClientError(
                "ApiClient must be used within a context manager. "
                "Use 'with ApiClient(settings) as client:'"
            )

        response: Optional[httpx.Response] = None

        for attempt in range(self.retry_count):
            try:
                response = self.session.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt < self.retry_count - 1:
                    wait_time = self._calculate_backoff(attempt)
                    logger.warning(
                        f"Network error: {e}. Retrying in {wait_time}s. "
                        f"Attempt {attempt + 1}/{self.retry_count}"
                    )
                    time.sleep(wait_time)
                    continue
                logger.error(f"All retries exhausted. Last error: {e}")
                raise

            if response.status_code == 429 and attempt < self.retry_count - 1:
                retry_after = self._parse_retry_after(response)
                logger.warning(
                    f"Rate limited (429). Waiting {retry_after}s before retry. "
                    f"Attempt {attempt + 1}/{self.retry_count}"
                )
                time.sleep(retry_after)
                continue
            break

        logger.debug(f"{method} {url} -> {response.status_code}")
        self._log_to_allure(method, url, kwargs, response)
        return response

    def _parse_retry_after(self, response: httpx.Response) -> float:
        """
        Parse the Retry-After header (seconds) of a 429 response.

        Returns:
            Wait time in seconds, capped at retry_max_wait
        """
        retry_after = response.headers.get("Retry-After", "")

        try:
            wait_time = float(retry_after)
        except ValueError:
            wait_time = self.retry_backoff

        return min(wait_time, self.retry_max_wait)

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Calculate exponential backoff wait time.

        Formula: base * (2 ^ attempt), capped at max_wait
        """
        wait_time = self.retry_backoff * (2 ** attempt)
        return min(wait_time, self.retry_max_wait)

    def _log_to_allure(
        self,
        method: str,
        url: str,
        kwargs: Dict[str, Any],
        response: httpx.Response,
    ) -> None:
        """
        Log HTTP request/response to Allure report.

        Attaches:
            - Request URL with query parameters
            - Request headers (masked)
            - Request body (if present)
            - cURL command for reproduction
            - Response status
            - Response body (truncated if too long)
        """
        full_url = str(response.request.url)

        status_mark = "OK" if response.status_code < 400 else "FAIL"
        step_title = f"[{status_mark}] {method} {url} -> {response.status_code}"

        with allure.step(step_title):
            allure.attach(
                full_url,
                name="Request URL",
                attachment_type=AttachmentType.TEXT,
            )

            safe_headers = self._redact_headers(kwargs.get("headers", {}))
            if safe_headers:
                allure.attach(
                    json.dumps(safe_headers, ensure_ascii=False, indent=2),
                    name="Request Headers",
                    attachment_type=AttachmentType.JSON,
                )

            body = kwargs.get("json")
            if body is None and kwargs.get("content") is not None:
                try:
                    body = json.loads(kwargs["content"])
                except ValueError:
                    body = kwargs["content"]
            safe_body = self._redact_body(body)
            if safe_body is not None:
                allure.attach(
                    safe_body if isinstance(safe_body, str)
                    else json.dumps(safe_body, ensure_ascii=False, indent=2),
                    name="Request Body",
                    attachment_type=AttachmentType.JSON,
                )

            curl_cmd = self._build_curl(method, full_url, safe_headers, safe_body)
            allure.attach(
                curl_cmd,
                name="cURL Command",
                attachment_type=AttachmentType.TEXT,
            )

            allure.attach(
                str(response.status_code),
                name="Response Status",
                attachment_type=AttachmentType.TEXT,
            )

            try:
                response_content = json.dumps(response.json(), ensure_ascii=False, indent=2)
            except ValueError:
                response_content = response.text or "<empty>"

            if len(response_content) > MAX_RESPONSE_LENGTH:
                response_content = (
                    f"{response_content[:MAX_RESPONSE_LENGTH]}\n\n"
                    f"... [Truncated, full length: {len(response_content)} chars] ..."
                )

            allure.attach(
                response_content,
                name="Response Body",
                attachment_type=AttachmentType.JSON,
            )

    def _redact_headers(self, headers: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive header values before logging."""
        masked = {}
        for key, value in headers.items():
            if key.lower() in SENSITIVE_HEADERS and value:
                masked[key] = "***MASKED***"
            else:
                masked[key] = value
        return masked

    def _redact_body(self, payload: Any) -> Any:
        """Recursively mask sensitive fields in request bodies."""
        if isinstance(payload, dict):
            redacted = {}
            for key, value in payload.items():
                if any(token in key.lower() for token in SENSITIVE_BODY_KEYS):
                    redacted[key] = "***MASKED***"
                else:
                    redacted[key] = self._redact_body(value)
            return redacted
        if isinstance(payload, list):
            return [self._redact_body(item) for item in payload]
        return payload

    def _build_curl(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Any,
    ) -> str:
        """Build a copy-paste ready cURL command (headers already masked)."""
        parts = [f"curl -X {method}"]

        for key, value in headers.items():
            parts.append(f"-H '{key}: {value}'")

        if body is not None:
            body_json = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)
            parts.append(f"-d '{body_json}'")

        parts.append(f"'{url}'")

        return " \\\n  ".join(parts)


__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiResponse",
]
