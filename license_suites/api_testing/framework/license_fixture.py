"""
================================================================================
License Fixture
================================================================================

Precondition and cleanup bookkeeping for tests that change license state on
the remote account.

Before a test:
    ensure_assignable() makes sure the source team holds enough assignable
    licenses, revoking previously assigned ones when needed.

After a test (pass or fail):
    reconcile() revokes every license the test assigned and moves every
    license the test transferred back to the source team.

Cleanup is best-effort. The API refuses to revoke a license for a while
after it was assigned, so failures are logged and never fail the test.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from .api_client import ApiClient
from .config_loader import Settings
from .models import ASSIGNMENT_STATUS_UNASSIGNED, ChangeTeamRequest, License


class PreconditionNotMet(Exception):
    """Raised when the remote account cannot satisfy a test precondition."""
    pass


@dataclass
class ReconcileReport:
    """Outcome of one reconcile pass."""
    revoked: List[str] = field(default_factory=list)
    revoke_failed: List[str] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)
    restore_failed: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.revoke_failed and not self.restore_failed


def _is_assignable(lic: License, transferable: bool) -> bool:
    if lic.is_available_to_assign is not True:
        return False
    return not transferable or lic.is_transferable_between_teams is True


class LicenseFixture:
    """
    Per-test coordinator for license preconditions and cleanup.

    Usage:
        >>> fixture = LicenseFixture(client, settings)
        >>> fixture.ensure_assignable(1)
        >>> client.assign_license(request)
        >>> fixture.track(license_id)
        >>> fixture.reconcile()  # in teardown
    """

    def __init__(self, client: ApiClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings
        # dicts keep insertion order and drop duplicates
        self._assigned: Dict[str, None] = {}
        self._transferred: Dict[str, None] = {}

    @property
    def assigned(self) -> List[str]:
        return list(self._assigned)

    @property
    def transferred(self) -> List[str]:
        return list(self._transferred)

    # =========================================================================
    # Preconditions
    # =========================================================================

    def _source_team_licenses(self, assignment_status: Optional[str] = None) -> List[License]:
        team_id = self.settings.source_team_id
        response = self.client.get_licenses(assignment_status=assignment_status, team_id=team_id)
        if response.status_code != 200 or response.body is None:
            raise PreconditionNotMet(
                f"Could not list licenses of SOURCE_TEAM_ID={team_id}: "
                f"GET /customer/licenses returned {response.status_code}. "
                f"Body: {response.raw_body}"
            )
        return response.body

    def ensure_assignable(self, count: int = 1, transferable: bool = False) -> int:
        """
        Make sure at least ``count`` assignable licenses exist in the source team.

        Revokes currently assigned licenses one by one until the threshold is
        met. A revoke refused by the API (cooldown) is logged and the next
        candidate is tried.

        Args:
            count: Number of assignable licenses needed
            transferable: Only count licenses that may move between teams

        Returns:
            Number of assignable licenses after the revokes

        Raises:
            PreconditionNotMet: When the threshold cannot be reached
        """
        team_id = self.settings.source_team_id
        licenses = self._source_team_licenses()

        available = sum(1 for lic in licenses if _is_assignable(lic, transferable))
        if available >= count:
            logger.debug(
                f"SOURCE_TEAM_ID={team_id} has {available} assignable license(s), need {count}"
            )
            return available

        candidates = [
            lic for lic in licenses
            if lic.license_id
            and lic.is_available_to_assign is False
            and lic.is_suspended is not True
            and (not transferable or lic.is_transferable_between_teams is True)
        ]
        logger.info(
            f"SOURCE_TEAM_ID={team_id} has {available}/{count} assignable license(s); "
            f"trying to free up to {len(candidates)} assigned license(s)"
        )

        for candidate in candidates:
            if available >= count:
                break
            if self._revoke(candidate.license_id):
                available += 1

        if available < count:
            kind = "transferable assignable" if transferable else "assignable"
            raise PreconditionNotMet(
                f"Need {count} {kind} license(s) in SOURCE_TEAM_ID={team_id}, "
                f"only {available} available after revoking candidates "
                f"(short by {count - available})."
            )
        return available

    def find_assignable(self, count: int = 1, transferable: bool = False) -> List[License]:
        """
        Return ``count`` assignable licenses of the source team.

        Raises:
            PreconditionNotMet: When fewer are available
        """
        found = [
            lic for lic in self._source_team_licenses(ASSIGNMENT_STATUS_UNASSIGNED)
            if lic.license_id and _is_assignable(lic, transferable)
        ][:count]
        if len(found) < count:
            raise PreconditionNotMet(
                f"Need {count} assignable license(s) in "
                f"SOURCE_TEAM_ID={self.settings.source_team_id}, found {len(found)}."
            )
        return found

    # =========================================================================
    # Tracking
    # =========================================================================

    def track(self, license_id: str) -> None:
        """Register a license assigned by the test so it is revoked afterwards."""
        self._assigned[license_id] = None

    def track_transfer(self, license_id: str) -> None:
        """Register a license moved to the target team so it is moved back afterwards."""
        self._transferred[license_id] = None

    # =========================================================================
    # Cleanup
    # =========================================================================

    def reconcile(self) -> ReconcileReport:
        """
        Revert everything tracked so far.

        Tracking is cleared before any call is made, so a second run does
        nothing. Never raises.
        """
        assigned, self._assigned = list(self._assigned), {}
        transferred, self._transferred = list(self._transferred), {}
        report = ReconcileReport()

        for license_id in assigned:
            if self._revoke(license_id):
                report.revoked.append(license_id)
            else:
                report.revoke_failed.append(license_id)

        if transferred:
            if self._restore(transferred):
                report.restored.extend(transferred)
            else:
                report.restore_failed.extend(transferred)

        if not report.clean:
            logger.warning(
                f"Cleanup incomplete, manual intervention may be required: "
                f"revoke failed={report.revoke_failed} restore failed={report.restore_failed}"
            )
        return report

    def _revoke(self, license_id: str) -> bool:
        try:
            response = self.client.revoke_license(license_id)
        except Exception as e:
            logger.error(f"Error revoking license {license_id}: {e}")
            return False

        if response.status_code == 200:
            logger.info(f"Revoked license {license_id}")
            return True

        logger.warning(
            f"Could not revoke license {license_id} (HTTP {response.status_code}). "
            f"Body: {response.raw_body}"
        )
        return False

    def _restore(self, license_ids: List[str]) -> bool:
        source_team_id = self.settings.source_team_id
        try:
            response = self.client.change_licenses_team(
                ChangeTeamRequest(license_ids=license_ids, target_team_id=source_team_id)
            )
        except Exception as e:
            logger.error(f"Error restoring licenses {license_ids} to SOURCE_TEAM: {e}")
            return False

        if response.status_code == 200:
            logger.info(f"Restored {len(license_ids)} license(s) to SOURCE_TEAM_ID={source_team_id}")
            return True

        logger.warning(
            f"Could not restore licenses {license_ids} to SOURCE_TEAM_ID={source_team_id} "
            f"(HTTP {response.status_code}). Body: {response.raw_body}"
        )
        return False


__all__ = [
    "LicenseFixture",
    "PreconditionNotMet",
    "ReconcileReport",
]
