"""
================================================================================
License API Testing Framework
================================================================================

Components for automated tests of the account-management API.

Modules:
    - config_loader: YAML configuration and environment secrets
    - api_client: Typed HTTP client with retry and Allure logging
    - models: Request/response models and the raw assign payload builder
    - license_fixture: License preconditions and cleanup
    - mutations: Negative assign payload generation
    - assertions: Status assertions with body-carrying messages
    - log_setup: Loguru configuration

Author: Automation Team
License: MIT
================================================================================
"""

from .api_client import ApiClient, ApiClientError, ApiResponse
from .config_loader import ConfigLoader, ConfigurationError, Settings, load_settings
from .license_fixture import LicenseFixture, PreconditionNotMet, ReconcileReport

__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiResponse",
    "ConfigLoader",
    "ConfigurationError",
    "LicenseFixture",
    "PreconditionNotMet",
    "ReconcileReport",
    "Settings",
    "load_settings",
]
