"""
================================================================================
License API Models
================================================================================

Typed request and response models for the account-management API.

Request models serialize to the camelCase wire format. Response models are
parsed leniently: every field is optional because the server may omit it.

    - AssignLicenseRequest / ChangeTeamRequest: validated typed requests
    - AssignLicenseBody: builder for intentionally incomplete payloads
    - License / TokenInfo / ChangeTeamResult: parsed responses
    - Assignee: tagged union keyed by the ``type`` discriminator

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union


# Wire value of the assignmentStatus query filter
ASSIGNMENT_STATUS_ASSIGNED = "ASSIGNED"
ASSIGNMENT_STATUS_UNASSIGNED = "UNASSIGNED"

TOKEN_TYPE_CUSTOMER = "CUSTOMER"
TOKEN_TYPE_TEAM = "TEAM"


# =============================================================================
# Requests
# =============================================================================

@dataclass(frozen=True)
class AssigneeContact:
    """Contact of the license assignee. All three fields are required by the API."""
    email: str
    first_name: str
    last_name: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }


@dataclass(frozen=True)
class AssignFromTeam:
    """Pick any available license of ``product_code`` from ``team``."""
    product_code: str
    team: int

    def to_payload(self) -> Dict[str, Any]:
        return {"productCode": self.product_code, "team": self.team}


@dataclass(frozen=True)
class AssignLicenseRequest:
    """
    Request body for ``POST /customer/licenses/assign``.

    Exactly one of ``license_id`` and ``license`` must be given. Use
    ``AssignLicenseBody`` to send payloads that break this rule.
    """
    contact: AssigneeContact
    include_offline_activation_code: bool
    send_email: bool
    license_id: Optional[str] = None
    license: Optional[AssignFromTeam] = None

    def __post_init__(self) -> None:
        if (self.license_id is None) == (self.license is None):
            raise ValueError(
                "AssignLicenseRequest needs exactly one of license_id or license"
            )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contact": self.contact.to_payload(),
            "includeOfflineActivationCode": self.include_offline_activation_code,
            "sendEmail": self.send_email,
        }
        if self.license_id is not None:
            payload["licenseId"] = self.license_id
        else:
            payload["license"] = self.license.to_payload()
        return payload


@dataclass(frozen=True)
class ChangeTeamRequest:
    """Request body for ``POST /customer/changeLicensesTeam``."""
    license_ids: List[str]
    target_team_id: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "licenseIds": list(self.license_ids),
            "targetTeamId": self.target_team_id,
        }


_CONTACT_KEYS = {
    "email": "email",
    "first_name": "firstName",
    "last_name": "lastName",
}
_LICENSE_KEYS = {
    "product_code": "productCode",
    "team": "team",
}


def _wire_fields(fields: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    unknown = set(fields) - set(mapping)
    if unknown:
        raise TypeError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    return {mapping[name]: value for name, value in fields.items()}


class AssignLicenseBody:
    """
    Builder for raw ``POST /customer/licenses/assign`` payloads.

    Only keys that were explicitly set appear in the output, so any
    combination of missing, present or invalid fields can be expressed
    without writing JSON strings by hand.

    Usage:
        >>> body = (
        ...     AssignLicenseBody()
        ...     .with_contact(first_name="QA", last_name="Automation")
        ...     .with_flags(include_offline_activation_code=False, send_email=False)
        ...     .with_license(product_code="II", team=42)
        ... )
        >>> body.to_dict()["contact"]
        {'firstName': 'QA', 'lastName': 'Automation'}
    """

    def __init__(self, fields: Optional[Dict[str, Any]] = None) -> None:
        self._fields: Dict[str, Any] = copy.deepcopy(fields) if fields else {}

    @classmethod
    def from_request(cls, request: AssignLicenseRequest) -> "AssignLicenseBody":
        """Start from a valid typed request."""
        return cls(request.to_payload())

    def _with(self, key: str, value: Any) -> "AssignLicenseBody":
        fields = copy.deepcopy(self._fields)
        fields[key] = value
        return AssignLicenseBody(fields)

    def with_contact(self, **fields: Any) -> "AssignLicenseBody":
        """Set ``contact`` to exactly the given fields (email, first_name, last_name)."""
        return self._with("contact", _wire_fields(fields, _CONTACT_KEYS))

    def with_flags(
        self,
        include_offline_activation_code: Optional[bool] = None,
        send_email: Optional[bool] = None,
    ) -> "AssignLicenseBody":
        """Set the boolean flags; a flag passed as None is left untouched."""
        body = self
        if include_offline_activation_code is not None:
            body = body._with("includeOfflineActivationCode", include_offline_activation_code)
        if send_email is not None:
            body = body._with("sendEmail", send_email)
        return body

    def with_license_id(self, license_id: Any) -> "AssignLicenseBody":
        return self._with("licenseId", license_id)

    def with_license(self, **fields: Any) -> "AssignLicenseBody":
        """Set ``license`` to exactly the given fields (product_code, team)."""
        return self._with("license", _wire_fields(fields, _LICENSE_KEYS))

    def without(self, *paths: str) -> "AssignLicenseBody":
        """
        Drop keys by wire name. Dotted paths reach into nested objects,
        e.g. ``without("contact.email")``.
        """
        fields = copy.deepcopy(self._fields)
        for path in paths:
            *parents, leaf = path.split(".")
            target: Any = fields
            for part in parents:
                target = target.get(part) if isinstance(target, dict) else None
            if isinstance(target, dict):
                target.pop(leaf, None)
        return AssignLicenseBody(fields)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._fields)

    def to_json(self) -> str:
        return json.dumps(self._fields)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AssignLicenseBody) and self._fields == other._fields

    def __repr__(self) -> str:
        return f"AssignLicenseBody({self._fields!r})"


# =============================================================================
# Responses
# =============================================================================

@dataclass(frozen=True)
class TeamRef:
    id: Optional[int] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TeamRef"]:
        if not isinstance(data, dict):
            return None
        return cls(id=data.get("id"), name=data.get("name"))


@dataclass(frozen=True)
class TeamDetails:
    id: Optional[int] = None
    name: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TeamDetails"]:
        if not isinstance(data, dict):
            return None
        return cls(id=data.get("id"), name=data.get("name"), role=data.get("role"))


@dataclass(frozen=True)
class Product:
    code: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Subscription:
    valid_until_date: Optional[str] = None
    is_outdated: Optional[bool] = None
    is_automatically_renewed: Optional[bool] = None


@dataclass(frozen=True)
class LastSeen:
    last_assignment_date: Optional[str] = None
    last_seen_date: Optional[str] = None
    is_offline_code_generated: Optional[bool] = None


@dataclass(frozen=True)
class UserAssignee:
    """License assigned to a user account."""
    email: Optional[str] = None
    name: Optional[str] = None
    type: str = "USER"


@dataclass(frozen=True)
class ServerAssignee:
    """License assigned to a license server."""
    name: Optional[str] = None
    type: str = "SERVER"


@dataclass(frozen=True)
class LicenseKeyAssignee:
    """License distributed as a license key."""
    name: Optional[str] = None
    type: str = "LICENSE_KEY"


@dataclass(frozen=True)
class UnknownAssignee:
    """Assignee with a discriminator this harness does not know."""
    type: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


Assignee = Union[UserAssignee, ServerAssignee, LicenseKeyAssignee, UnknownAssignee]

_ASSIGNEE_PARSERS: Dict[str, Callable[[Dict[str, Any]], Assignee]] = {
    "USER": lambda d: UserAssignee(email=d.get("email"), name=d.get("name")),
    "SERVER": lambda d: ServerAssignee(name=d.get("name")),
    "LICENSE_KEY": lambda d: LicenseKeyAssignee(name=d.get("name")),
}


def parse_assignee(data: Any) -> Optional[Assignee]:
    """Dispatch on the ``type`` discriminator."""
    if not isinstance(data, dict):
        return None
    kind = data.get("type")
    parser = _ASSIGNEE_PARSERS.get(kind) if isinstance(kind, str) else None
    if parser is None:
        return UnknownAssignee(type=kind, raw=dict(data))
    return parser(data)


@dataclass(frozen=True)
class License:
    """
    License object returned by:
        - GET /customer/licenses (list)
        - GET /customer/licenses/{licenseId}
        - GET /customer/teams/{teamId}/licenses
    """
    license_id: Optional[str] = None
    is_available_to_assign: Optional[bool] = None
    is_transferable_between_teams: Optional[bool] = None
    is_suspended: Optional[bool] = None
    is_trial: Optional[bool] = None
    assignee: Optional[Assignee] = None
    product: Optional[Product] = None
    team: Optional[TeamRef] = None
    subscription: Optional[Subscription] = None
    last_seen: Optional[LastSeen] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "License":
        product = data.get("product")
        subscription = data.get("subscription")
        last_seen = data.get("lastSeen")
        return cls(
            license_id=data.get("licenseId"),
            is_available_to_assign=data.get("isAvailableToAssign"),
            is_transferable_between_teams=data.get("isTransferableBetweenTeams"),
            is_suspended=data.get("isSuspended"),
            is_trial=data.get("isTrial"),
            assignee=parse_assignee(data.get("assignee")),
            product=Product(
                code=product.get("code"),
                name=product.get("name"),
            ) if isinstance(product, dict) else None,
            team=TeamRef.from_dict(data.get("team")),
            subscription=Subscription(
                valid_until_date=subscription.get("validUntilDate"),
                is_outdated=subscription.get("isOutdated"),
                is_automatically_renewed=subscription.get("isAutomaticallyRenewed"),
            ) if isinstance(subscription, dict) else None,
            last_seen=LastSeen(
                last_assignment_date=last_seen.get("lastAssignmentDate"),
                last_seen_date=last_seen.get("lastSeenDate"),
                is_offline_code_generated=last_seen.get("isOfflineCodeGenerated"),
            ) if isinstance(last_seen, dict) else None,
        )

    @property
    def assignee_email(self) -> Optional[str]:
        if isinstance(self.assignee, UserAssignee):
            return self.assignee.email
        return None

    @property
    def product_code(self) -> Optional[str]:
        return self.product.code if self.product else None


def parse_license_list(data: Any) -> List[License]:
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of licenses, got {type(data).__name__}")
    return [License.from_dict(item) for item in data if isinstance(item, dict)]


@dataclass(frozen=True)
class TokenInfo:
    """
    ``GET /token`` response.

    CUSTOMER tokens carry ``role`` and ``teams``; TEAM tokens carry ``team``.
    """
    type: Optional[str] = None
    role: Optional[str] = None
    teams: List[TeamRef] = field(default_factory=list)
    team: Optional[TeamDetails] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenInfo":
        teams = data.get("teams") or []
        return cls(
            type=data.get("type"),
            role=data.get("role"),
            teams=[t for t in (TeamRef.from_dict(item) for item in teams) if t is not None],
            team=TeamDetails.from_dict(data.get("team")),
        )

    @property
    def effective_role(self) -> Optional[str]:
        """Root role for CUSTOMER tokens, team role for TEAM tokens."""
        if self.role is not None:
            return self.role
        return self.team.role if self.team else None

    @property
    def is_customer_scoped(self) -> bool:
        return self.type == TOKEN_TYPE_CUSTOMER


@dataclass(frozen=True)
class ChangeTeamResult:
    """
    ``POST /customer/changeLicensesTeam`` response.

    Only the list of transferred ids is documented.
    """
    license_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeTeamResult":
        return cls(license_ids=list(data.get("licenseIds") or []))


__all__ = [
    "ASSIGNMENT_STATUS_ASSIGNED",
    "ASSIGNMENT_STATUS_UNASSIGNED",
    "AssignFromTeam",
    "AssignLicenseBody",
    "AssignLicenseRequest",
    "Assignee",
    "AssigneeContact",
    "ChangeTeamRequest",
    "ChangeTeamResult",
    "LastSeen",
    "License",
    "LicenseKeyAssignee",
    "Product",
    "ServerAssignee",
    "Subscription",
    "TeamDetails",
    "TeamRef",
    "TokenInfo",
    "UnknownAssignee",
    "UserAssignee",
    "parse_assignee",
    "parse_license_list",
]
