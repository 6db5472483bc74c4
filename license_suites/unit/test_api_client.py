import json

import httpx
import pytest

from license_suites.api_testing.framework import api_client as api_client_module
from license_suites.api_testing.framework.api_client import ApiClient, ApiClientError
from license_suites.api_testing.framework.config_loader import Settings
from license_suites.api_testing.framework.models import (
    AssignFromTeam,
    AssignLicenseBody,
    AssignLicenseRequest,
    AssigneeContact,
    ChangeTeamRequest,
)


SETTINGS = Settings(
    base_url="https://api.example.test/v1",
    customer_code="CUST-1",
    source_team_id=11,
    target_team_id=22,
    test_user_email="qa@example.com",
    org_admin_key="org-key",
    retry_count=3,
    retry_backoff=0.0,
    retry_max_wait=0.0,
)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(api_client_module.time, "sleep", lambda _: None)


def _client(handler):
    return ApiClient(SETTINGS, transport=httpx.MockTransport(handler))


def test_authenticated_calls_carry_configured_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"type": "CUSTOMER", "role": "ADMIN", "teams": []})

    with _client(handler) as client:
        response = client.get_token()

    assert response.status_code == 200
    assert response.ok
    assert response.body.is_customer_scoped
    assert seen[0].url.path == "/v1/token"
    assert seen[0].headers["X-Api-Key"] == "org-key"
    assert seen[0].headers["X-Customer-Code"] == "CUST-1"


def test_token_without_auth_sends_no_auth_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(401, text="Unauthorized")

    with _client(handler) as client:
        response = client.get_token_without_auth()

    assert response.status_code == 401
    assert response.body == "Unauthorized"
    assert "X-Api-Key" not in seen[0].headers
    assert "X-Customer-Code" not in seen[0].headers


def test_get_licenses_sends_only_given_filters():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"licenseId": "A", "isAvailableToAssign": True}])

    with _client(handler) as client:
        filtered = client.get_licenses(assignment_status="UNASSIGNED", team_id=11)
        unfiltered = client.get_licenses()

    assert dict(seen[0].url.params) == {"assignmentStatus": "UNASSIGNED", "teamId": "11"}
    assert dict(seen[1].url.params) == {}
    assert [lic.license_id for lic in filtered.body] == ["A"]
    assert unfiltered.body[0].is_available_to_assign is True


def test_non_2xx_is_returned_not_raised():
    def handler(request):
        return httpx.Response(404, json={"code": "LICENSE_NOT_FOUND"})

    with _client(handler) as client:
        response = client.get_license_by_id("NOPE")

    assert response.status_code == 404
    assert not response.ok
    assert "LICENSE_NOT_FOUND" in response.raw_body
    # parse is best-effort: the error document still becomes a License shell
    assert response.body.license_id is None


def test_unparseable_body_yields_none_with_raw_text():
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    with _client(handler) as client:
        response = client.get_team_licenses(22)

    assert response.status_code == 200
    assert response.body is None
    assert response.raw_body == "<html>oops</html>"


def test_empty_success_body_is_none():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    request = AssignLicenseRequest(
        contact=AssigneeContact("qa@example.com", "QA", "Automation"),
        include_offline_activation_code=False,
        send_email=False,
        license=AssignFromTeam("II", 11),
    )
    with _client(handler) as client:
        response = client.assign_license(request)

    assert response.status_code == 200
    assert response.body is None
    assert response.raw_body == ""
    assert json.loads(seen[0].content) == request.to_payload()


def test_raw_assign_sends_builder_payload_and_header_overrides():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(401, text="bad key")

    body = AssignLicenseBody().with_flags(send_email=False)
    with _client(handler) as client:
        response = client.assign_license_raw(body, api_key="", customer_code="OTHER")

    assert response.status_code == 401
    sent = seen[0]
    assert sent.method == "POST"
    assert sent.url.path == "/v1/customer/licenses/assign"
    assert sent.headers["X-Api-Key"] == ""
    assert sent.headers["X-Customer-Code"] == "OTHER"
    assert sent.headers["Content-Type"] == "application/json"
    assert json.loads(sent.content) == {"sendEmail": False}


def test_raw_change_team_sends_string_verbatim():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(400, text="bad")

    with _client(handler) as client:
        client.change_licenses_team_raw("{}")

    assert seen[0].content == b"{}"
    assert seen[0].headers["X-Api-Key"] == "org-key"


def test_revoke_passes_license_id_as_query_param():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    with _client(handler) as client:
        client.revoke_license("LIC-9")

    assert seen[0].method == "POST"
    assert seen[0].url.path == "/v1/customer/licenses/revoke"
    assert seen[0].url.params["licenseId"] == "LIC-9"


def test_change_team_parses_transferred_ids():
    def handler(request):
        assert json.loads(request.content) == {"licenseIds": ["A", "B"], "targetTeamId": 22}
        return httpx.Response(200, json={"licenseIds": ["A", "B"]})

    with _client(handler) as client:
        response = client.change_licenses_team(ChangeTeamRequest(["A", "B"], 22))

    assert response.body.license_ids == ["A", "B"]


def test_rate_limit_is_retried():
    statuses = iter([429, 200])

    def handler(request):
        return httpx.Response(next(statuses), headers={"Retry-After": "1"}, text="")

    with _client(handler) as client:
        response = client.rotate_token()

    assert response.status_code == 200


def test_rate_limit_exhaustion_returns_last_response():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, text="slow down")

    with _client(handler) as client:
        response = client.rotate_token()

    assert response.status_code == 429
    assert response.raw_body == "slow down"
    assert len(calls) == SETTINGS.retry_count


def test_network_errors_are_retried_then_raised():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    with _client(handler) as client:
        with pytest.raises(httpx.ConnectError):
            client.get_token()

    assert len(calls) == SETTINGS.retry_count


def test_network_error_then_success():
    outcomes = iter(["fail", "ok"])

    def handler(request):
        if next(outcomes) == "fail":
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json={"type": "TEAM", "team": {"id": 1, "role": "ADMIN"}})

    with _client(handler) as client:
        response = client.get_token()

    assert response.body.effective_role == "ADMIN"


def test_client_outside_context_manager_raises():
    client = ApiClient(SETTINGS)

    with pytest.raises(ApiClientError, match="context manager"):
        client.get_token()


def test_exit_releases_session():
    with _client(lambda r: httpx.Response(200)) as client:
        assert client.session is not None

    assert client.session is None


def test_redact_headers_masks_sensitive_values():
    client = object.__new__(ApiClient)  # bypass __init__
    masked = client._redact_headers(
        {
            "X-Api-Key": "org-key",
            "Authorization": "secret-token",
            "Cookie": "session=abc",
            "X-Customer-Code": "CUST-1",
        }
    )
    assert masked["X-Api-Key"] == "***MASKED***"
    assert masked["Authorization"] == "***MASKED***"
    assert masked["Cookie"] == "***MASKED***"
    assert masked["X-Customer-Code"] == "CUST-1"


def test_redact_headers_keeps_empty_key_visible():
    client = object.__new__(ApiClient)

    assert client._redact_headers({"X-Api-Key": ""}) == {"X-Api-Key": ""}


def test_redact_body_masks_sensitive_fields():
    client = object.__new__(ApiClient)
    payload = {
        "token": "tok",
        "nested": {"apiKey": "k", "keep": "value"},
        "items": [{"secret": "s"}, {"licenseId": "A"}],
    }
    redacted = client._redact_body(payload)

    assert redacted["token"] == "***MASKED***"
    assert redacted["nested"]["apiKey"] == "***MASKED***"
    assert redacted["nested"]["keep"] == "value"
    assert redacted["items"][0]["secret"] == "***MASKED***"
    assert redacted["items"][1]["licenseId"] == "A"


def test_build_curl_includes_body_and_headers():
    client = object.__new__(ApiClient)
    curl = client._build_curl(
        "POST",
        "https://api.example.test/v1/customer/licenses/assign",
        {"X-Customer-Code": "CUST-1"},
        {"sendEmail": False},
    )

    assert curl.startswith("curl -X POST")
    assert "-H 'X-Customer-Code: CUST-1'" in curl
    assert "-d '{\"sendEmail\": false}'" in curl
