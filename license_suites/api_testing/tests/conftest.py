"""
================================================================================
Live API Pytest Configuration
================================================================================

Shared fixtures for tests against the live license API.

Fixtures:
    - settings: Resolved configuration (fatal if incomplete)
    - api_client: Typed API client, connection pool released at session end
    - token_info: Result of the session auth check
    - require_customer_token: Skips tests needing an organization-scoped key
    - license_fixture: Per-test precondition and cleanup coordinator
    - ensure_assignable: Precondition helper that skips instead of failing
    - test_contact / valid_assign_body: Request data

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import Callable, Generator

import allure
import pytest
from loguru import logger

from ..framework import (
    ApiClient,
    ConfigurationError,
    LicenseFixture,
    PreconditionNotMet,
    Settings,
    load_settings,
)
from ..framework.models import AssignLicenseBody, AssigneeContact, TokenInfo


# Product code used when a request only needs a syntactically valid product
DEFAULT_PRODUCT_CODE = "II"


# =============================================================================
# Session-Scoped Fixtures (Shared across all tests)
# =============================================================================

@pytest.fixture(scope="session")
def settings() -> Settings:
    """
    Resolve configuration once per session.

    A missing key or secret aborts the whole run: every live test depends on it.
    """
    try:
        return load_settings()
    except ConfigurationError as e:
        pytest.exit(f"Configuration error: {e}", returncode=4)


@pytest.fixture(scope="session")
def api_client(settings: Settings) -> Generator[ApiClient, None, None]:
    """Provide the API client; its connection pool is closed after the session."""
    with ApiClient(settings) as client:
        yield client


@pytest.fixture(scope="session", autouse=True)
def token_info(api_client: ApiClient) -> TokenInfo:
    """
    Verify the configured key by calling ``GET /token`` before any test.

    Every test errors with the same clear message when credentials are wrong.
    """
    response = api_client.get_token()
    if response.status_code != 200 or response.body is None:
        pytest.fail(
            f"Auth check failed - GET /token returned {response.status_code}. "
            f"Verify ORG_ADMIN_API_KEY is set and valid.\nBody: {response.raw_body}",
            pytrace=False,
        )
    logger.info(
        f"Authenticated: token type={response.body.type} role={response.body.effective_role}"
    )
    return response.body


@pytest.fixture
def require_customer_token(token_info: TokenInfo) -> None:
    """
    Skip when the configured key is team-scoped.

    Assign and change-team require an organization-scoped key and answer
    403 TOKEN_TYPE_MISMATCH otherwise.
    """
    if not token_info.is_customer_scoped:
        pytest.skip(
            f"API key has token type '{token_info.type}'. This test requires a "
            f"customer-scoped (organization-level) API key, not a team-scoped one."
        )


# =============================================================================
# Function-Scoped Fixtures (Fresh for each test)
# =============================================================================

@pytest.fixture
def license_fixture(
    api_client: ApiClient,
    settings: Settings,
) -> Generator[LicenseFixture, None, None]:
    """
    Track licenses the test assigns or transfers and revert them afterwards.

    Usage:
        def test_assign(api_client, license_fixture):
            response = api_client.assign_license(request)
            license_fixture.track(license_id)
    """
    fixture = LicenseFixture(api_client, settings)
    try:
        yield fixture
    finally:
        report = fixture.reconcile()
        if report.revoked or report.restored:
            logger.debug(f"Cleanup: revoked={report.revoked} restored={report.restored}")


@pytest.fixture
def ensure_assignable(license_fixture: LicenseFixture) -> Callable[..., int]:
    """
    Return a helper that guarantees assignable licenses in the source team.

    The test is skipped, not failed, when the account cannot provide them.
    """
    def _ensure(count: int = 1, transferable: bool = False) -> int:
        try:
            return license_fixture.ensure_assignable(count, transferable=transferable)
        except PreconditionNotMet as e:
            pytest.skip(str(e))

    return _ensure


@pytest.fixture
def test_contact(settings: Settings) -> AssigneeContact:
    """Contact of the configured test user."""
    return AssigneeContact(
        email=settings.test_user_email,
        first_name="QA",
        last_name="Automation",
    )


@pytest.fixture
def valid_assign_body(test_contact: AssigneeContact, settings: Settings) -> AssignLicenseBody:
    """A well-formed assign payload selecting by product and source team."""
    return (
        AssignLicenseBody()
        .with_contact(
            email=test_contact.email,
            first_name=test_contact.first_name,
            last_name=test_contact.last_name,
        )
        .with_flags(include_offline_activation_code=False, send_email=False)
        .with_license(product_code=DEFAULT_PRODUCT_CODE, team=settings.source_team_id)
    )


# =============================================================================
# Allure Reporting Hooks
# =============================================================================

def pytest_exception_interact(node, call, report):
    """Attach additional info on test failure."""
    if report.failed:
        allure.attach(
            str(call.excinfo.value),
            name="Error Details",
            attachment_type=allure.attachment_type.TEXT,
        )
