"""
================================================================================
Response Assertions
================================================================================

Status-code assertions that always carry the raw response body in the
failure message and in the Allure report.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import Iterable

import allure

from .api_client import ApiResponse


def _fail(message: str) -> None:
    allure.attach(
        message,
        name="Assertion Failure",
        attachment_type=allure.attachment_type.TEXT,
    )
    raise AssertionError(message)


def assert_status(response: ApiResponse, expected: int, context: str = "") -> None:
    """Assert the response status equals ``expected``."""
    if response.status_code != expected:
        prefix = f"[{context}] " if context else ""
        _fail(
            f"{prefix}Expected HTTP {expected} but got {response.status_code}.\n"
            f"Body: {response.raw_body}"
        )


def assert_success(response: ApiResponse, context: str = "") -> None:
    """Assert the response status is 200."""
    assert_status(response, 200, context)


def assert_status_in(response: ApiResponse, expected: Iterable[int], context: str = "") -> None:
    """Assert the response status is one of ``expected``."""
    allowed = sorted(set(expected))
    if response.status_code not in allowed:
        prefix = f"[{context}] " if context else ""
        _fail(
            f"{prefix}Expected HTTP one of {allowed} but got {response.status_code}.\n"
            f"Body: {response.raw_body}"
        )


__all__ = [
    "assert_status",
    "assert_status_in",
    "assert_success",
]
