# ABOUTME: Safety utilities for the hub runbooks
# ABOUTME: Implements read-only and dry-run guards for cluster writes

"""Safety utilities guarding the runbooks' cluster writes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from hub_runbooks.config import SecuritySettings

logger = structlog.get_logger(__name__)


@dataclass
class DryRunSkip:
    """Response indicating a destructive operation was skipped by dry run."""

    operation: str
    target: str
    impact: str

    @property
    def reason(self) -> str:
        return "dry run"


@dataclass
class OperationBlocked:
    """Response indicating operation is blocked by security settings."""

    operation: str
    reason: str
    setting: str

    def format_message(self) -> str:
        """Format blocked message for the runbook report."""
        return (
            f"OPERATION BLOCKED: {self.operation}\n"
            f"Reason: {self.reason}\n"
            f"Setting: {self.setting}\n"
            f"To enable: Set {self.setting}=false in the environment"
        )


class SafetyGuard:
    """Safety guard deciding whether a runbook may write to a cluster."""

    def __init__(self, settings: SecuritySettings) -> None:
        """Initialize safety guard.

        Args:
            settings: Security settings
        """
        self._settings = settings

    def check_write_operation(self, operation: str) -> OperationBlocked | None:
        """Check if a non-destructive write (a patch) is allowed.

        Args:
            operation: Operation name

        Returns:
            OperationBlocked if blocked, None if allowed
        """
        if self._settings.read_only:
            logger.info("Write blocked by read-only mode", operation=operation)
            return OperationBlocked(
                operation=operation,
                reason="Runbook is running in read-only mode",
                setting="RUNBOOK_READ_ONLY",
            )
        return None

    def check_destructive_operation(
        self,
        operation: str,
        target: str,
    ) -> DryRunSkip | None:
        """Check if a deletion should actually be performed.

        Deletion is what the cleanup runbook exists for, so read-only mode
        does not apply here; only dry run holds it back.

        Args:
            operation: Operation name
            target: Target resource identifier

        Returns:
            DryRunSkip if dry run is on, None if the deletion may proceed
        """
        if self._settings.dry_run:
            return DryRunSkip(
                operation=operation,
                target=target,
                impact=self._get_impact_description(operation),
            )
        return None

    @staticmethod
    def _get_impact_description(operation: str) -> str:
        """Get human-readable impact description for operation."""
        impacts = {
            "delete_configmap": "ConfigMap will be removed from the managed cluster",
            "patch_application": "Application spec or operation will be changed on the hub",
        }
        return impacts.get(operation, "This operation changes cluster state")
