# ABOUTME: Structured logging with run correlation IDs for the hub runbooks
# ABOUTME: Implements stderr logging and the audit trail of cluster writes

"""
Structured logging with run correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

The runbooks have two kinds of output:

1. THE REPORT: human-readable lines printed on stdout. This is what the
   operator reads and what the tests assert on.

2. LOGS: structured events on stderr (or JSON lines when log_json is set).
   These carry the details the report leaves out: which API call failed,
   with what status code, against which cluster.

Keeping them on separate streams means `hub-sync-report > report.txt`
captures a clean report while warnings still reach the terminal.

=============================================================================
RUN CORRELATION IDs
=============================================================================

Every invocation of a runbook gets one short correlation ID. All log lines
and audit entries written during that run carry it, so a cleanup run over
forty clusters can be pulled out of a shared log file with:

    jq 'select(.correlation_id == "a1b2c3d4")'

The ID lives in a ContextVar rather than a module global so that tests (and
anything embedding the runbooks) can set their own without leaking state.

=============================================================================
AUDIT LOGGING
=============================================================================

The placeholder cleanup deletes objects on remote clusters, and the sync
report can patch an Application. Each of those writes, each dry-run skip,
and each write refused by the safety guard is recorded by AuditLogger:

    {"timestamp": "...", "correlation_id": "a1b2c3d4",
     "action": "delete_configmap", "target": "spoke-1/openshift-config/...",
     "result": "deleted"}
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# =============================================================================
# CORRELATION ID MANAGEMENT
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate new one.

    The first call in a run generates an 8-character ID from a UUID4 and
    stores it; later calls return the same value.

    Returns:
        8-character correlation ID string.
    """
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """
    Set correlation ID for current context.

    Runbook entry points call this with "" at startup so every run gets a
    fresh ID.

    Args:
        cid: The correlation ID to set. "" makes the next
             get_correlation_id() generate a new one.
    """
    correlation_id.set(cid)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """
    Add correlation ID to log events.

    Structlog processor: receives the event dictionary of every log call
    and returns it with a "correlation_id" field added.
    """
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging.

    Call once at runbook startup, after settings are loaded.

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: Adds values bound with bind_contextvars()
       (the runbooks bind "cluster" while iterating managed clusters)
    2. add_log_level: Adds "level" field
    3. TimeStamper: Adds ISO-format timestamp
    4. add_correlation_id: Adds the run correlation ID
    5. Renderer: JSON or colored console text

    OUTPUT STREAM:
    --------------
    Always stderr. stdout belongs to the runbook report.

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL".
               Unknown names fall back to WARNING.
        json_output: If True, one JSON object per line (for log shipping).
                    If False, colored console output.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.WARNING)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # Not cached: configure_logging runs again once CLI flags are known.
        cache_logger_on_first_use=False,
    )


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit logger for cluster writes.

    WHAT WE LOG:
    ------------
    - timestamp: When it happened (UTC ISO 8601)
    - correlation_id: Run identifier
    - action: "delete_configmap", "patch_application", ...
    - target: "<cluster>/<namespace>/<name>"
    - result: "deleted", "patched", "dry_run", "blocked", "error", ...
    - details: Additional context (patch body, error message)

    TWO OUTPUT MODES:
    -----------------
    1. FILE: Append JSON lines to RUNBOOK_AUDIT_LOG
    2. STRUCTLOG: Emit an "audit" event at INFO level
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file, or None for structlog output.
                     The file is appended to, never truncated; its parent
                     directory must exist.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log an auditable action.

        All convenience methods delegate here.

        Args:
            action: Operation performed (e.g. "delete_configmap")
            target: Resource identifier (e.g. "spoke-1/openshift-config/x")
            result: Outcome (e.g. "deleted", "blocked", "error")
            details: Optional extra context
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }

        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_read(self, action: str, target: str) -> None:
        """Log a successful read operation."""
        self.log(action, target, "success")

    def log_write(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log a write operation.

        Results used by the runbooks:
        - "deleted": ConfigMap removed
        - "patched": Application patched
        - "dry_run": Write skipped because dry run is on
        """
        self.log(action, target, result, details)

    def log_blocked(
        self,
        action: str,
        target: str,
        reason: str,
    ) -> None:
        """Log a write refused by the safety guard."""
        self.log(action, target, "blocked", {"reason": reason})

    def log_error(
        self,
        action: str,
        target: str,
        error: str,
    ) -> None:
        """Log a failed operation."""
        self.log(action, target, "error", {"error": error})
