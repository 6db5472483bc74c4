"""
================================================================================
Suite-Level Pytest Configuration
================================================================================

Registers the project markers and gates live suites behind the `--live`
and `--lifecycle` switches declared in the repository conftest.

================================================================================
"""

from pathlib import Path

import pytest


def pytest_configure(config):
    """Configure pytest with project-wide custom markers."""

    # Priority markers
    config.addinivalue_line(
        "markers", "P0: Critical priority tests - must pass for deployment"
    )
    config.addinivalue_line(
        "markers", "P1: High priority tests - important functionality"
    )
    config.addinivalue_line(
        "markers", "P2: Medium priority tests - edge cases"
    )
    config.addinivalue_line(
        "markers", "P3: Low priority tests - exploratory"
    )

    # Test type markers
    config.addinivalue_line(
        "markers", "smoke: Quick verification tests"
    )
    config.addinivalue_line(
        "markers", "positive: Happy-path tests that change license state"
    )
    config.addinivalue_line(
        "markers", "negative: Error-path tests asserting 4xx responses"
    )
    config.addinivalue_line(
        "markers", "lifecycle: Tests that permanently alter account state (run with --lifecycle)"
    )
    config.addinivalue_line(
        "markers", "live: Tests calling the live API (run with --live)"
    )
    config.addinivalue_line(
        "markers", "unit: Offline tests of the framework itself"
    )

    # Feature markers
    config.addinivalue_line(
        "markers", "assign: Tests related to license assignment"
    )
    config.addinivalue_line(
        "markers", "team: Tests related to moving licenses between teams"
    )
    config.addinivalue_line(
        "markers", "auth: Tests related to authentication and token scope"
    )


def pytest_collection_modifyitems(config, items):
    """
    Mark tests by directory and skip the ones the command line did not enable.
    """
    run_live = config.getoption("--live")
    run_lifecycle = config.getoption("--lifecycle")

    skip_live = pytest.mark.skip(reason="live API suite: pass --live to run")
    skip_lifecycle = pytest.mark.skip(
        reason="changes account state permanently: pass --lifecycle to run"
    )

    for item in items:
        parts = Path(str(item.fspath)).parts

        if "api_testing" in parts:
            item.add_marker(pytest.mark.live)
        if "unit" in parts:
            item.add_marker(pytest.mark.unit)

        if "live" in item.keywords and not run_live:
            item.add_marker(skip_live)
        elif "lifecycle" in item.keywords and not run_lifecycle:
            item.add_marker(skip_lifecycle)


def pytest_report_header(config):
    """Add custom header to pytest output."""
    return [
        "",
        "=" * 60,
        "License API Automation Suite",
        f"live={config.getoption('--live')} lifecycle={config.getoption('--lifecycle')}",
        "=" * 60,
        "",
    ]
