"""
================================================================================
Assign Payload Mutations
================================================================================

Generates negative test cases for ``POST /customer/licenses/assign`` from a
valid payload.

Mutation Strategies:
    - missing_field: Remove required fields one by one
    - format_error: Invalid email values
    - mutually_exclusive: licenseId and license both present / both absent

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from .models import AssignLicenseBody


CONTACT_FIELDS = ("email", "firstName", "lastName")

INVALID_EMAILS = {
    "empty": "",
    "malformed": "notanemail",
}

# Never issued by the API
NONEXISTENT_LICENSE_ID = "FAKE9999999"


@dataclass(frozen=True)
class MutationCase:
    """
    A single mutation test case.

    Attributes:
        name: Test id, stable across runs
        description: What this mutation tests
        strategy: Mutation strategy used
        body: The mutated request payload
        expected_status: Expected HTTP status code
        field: The field being mutated (if applicable)
    """
    name: str
    description: str
    strategy: str
    body: AssignLicenseBody
    expected_status: int = 400
    field: Optional[str] = None


class AssignMutationGenerator:
    """
    Generate mutation cases from a valid assign payload.

    Usage:
        >>> generator = AssignMutationGenerator(valid_body)
        >>> for case in generator.generate_all():
        ...     print(case.name, case.body.to_dict())
    """

    def __init__(
        self,
        valid_body: AssignLicenseBody,
        strategies: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Args:
            valid_body: A payload the API accepts, assigning by ``license``
            strategies: Strategies to apply; all of them if None
        """
        self.valid_body = valid_body
        self.strategies = list(strategies or [
            "missing_field",
            "format_error",
            "mutually_exclusive",
        ])

    def generate_all(self) -> List[MutationCase]:
        cases: List[MutationCase] = []
        for strategy in self.strategies:
            generate = getattr(self, f"_generate_{strategy}", None)
            if generate is None:
                raise ValueError(f"Unknown mutation strategy: {strategy}")
            cases.extend(generate())

        logger.debug(f"Generated {len(cases)} assign mutation case(s)")
        return cases

    def missing_contact_field_cases(self) -> List[MutationCase]:
        """One case per required contact sub-field, each expecting 400."""
        return [
            MutationCase(
                name=f"missing_contact_{name}",
                description=f"contact.{name} omitted",
                strategy="missing_field",
                body=self.valid_body.without(f"contact.{name}"),
                field=f"contact.{name}",
            )
            for name in CONTACT_FIELDS
        ]

    def _generate_missing_field(self) -> List[MutationCase]:
        cases = self.missing_contact_field_cases()
        cases.append(MutationCase(
            name="missing_contact",
            description="contact object omitted",
            strategy="missing_field",
            body=self.valid_body.without("contact"),
            field="contact",
        ))
        cases.append(MutationCase(
            name="missing_include_offline_activation_code",
            description="includeOfflineActivationCode omitted",
            strategy="missing_field",
            body=self.valid_body.without("includeOfflineActivationCode"),
            field="includeOfflineActivationCode",
        ))
        return cases

    def _generate_format_error(self) -> List[MutationCase]:
        contact = self.valid_body.to_dict().get("contact", {})
        cases = []
        for label, email in INVALID_EMAILS.items():
            cases.append(MutationCase(
                name=f"{label}_email",
                description=f"contact.email is {label} ({email!r})",
                strategy="format_error",
                body=self.valid_body.with_contact(
                    email=email,
                    first_name=contact.get("firstName"),
                    last_name=contact.get("lastName"),
                ),
                field="contact.email",
            ))
        return cases

    def _generate_mutually_exclusive(self) -> List[MutationCase]:
        return [
            MutationCase(
                name="neither_license_id_nor_license",
                description="both license selectors omitted",
                strategy="mutually_exclusive",
                body=self.valid_body.without("licenseId", "license"),
            ),
            MutationCase(
                name="both_license_id_and_license",
                description="unknown licenseId takes precedence over license",
                strategy="mutually_exclusive",
                body=self.valid_body.with_license_id(NONEXISTENT_LICENSE_ID),
                expected_status=404,
                field="licenseId",
            ),
        ]


__all__ = [
    "AssignMutationGenerator",
    "MutationCase",
    "NONEXISTENT_LICENSE_ID",
]
