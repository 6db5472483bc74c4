"""
Repository-level pytest configuration.

Responsibilities:
  - Register the command-line switches that gate suites touching the live API
  - Configure Loguru once per session from the committed config

Live suites never run by accident: they need `--live`, and the suites that
permanently change account state also need `--lifecycle`.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from license_suites.api_testing.framework.config_loader import ConfigLoader
from license_suites.api_testing.framework.log_setup import init_logger


pytest_plugins = ["pytester"]


def pytest_addoption(parser):
    group = parser.getgroup("license-api")
    group.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run suites against the live license API (needs ORG_ADMIN_API_KEY).",
    )
    group.addoption(
        "--lifecycle",
        action="store_true",
        default=False,
        help="Also run lifecycle tests that permanently change account state.",
    )


def pytest_configure(config):
    loader = ConfigLoader()
    init_logger(
        level=str(loader.get("logging.level", "INFO")),
        log_file=loader.get("logging.file"),
        rotation=str(loader.get("logging.rotation", "10 MB")),
        retention=str(loader.get("logging.retention", "7 days")),
    )


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return repo root path."""
    return Path(__file__).parent
