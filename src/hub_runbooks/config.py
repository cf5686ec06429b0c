# ABOUTME: Configuration management for the hub runbooks
# ABOUTME: Handles environment variables, runbook targets, and safety modes

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module holds every knob the two runbooks read. The defaults reproduce
the fixed targets the runbooks were written for (the opp-policy Application
in ramendr-starter-kit-hub, the cluster-proxy-ca-bundle ConfigMap in
openshift-config), so running a runbook with no environment at all does the
expected thing. Environment variables only move the targets around.

=============================================================================
ARCHITECTURE: CONFIGURATION CLASSES
=============================================================================

1. ApplicationTarget: The ArgoCD Application the sync report inspects
   - name, namespace

2. CleanupTarget: What the placeholder cleanup looks for on each cluster
   - ConfigMap name/namespace/key, placeholder markers
   - kubeconfig secret naming pattern and handoff directory

3. SecuritySettings: Safety switches (RUNBOOK_ prefix)
   - Read-only mode for remediation patches, dry-run for deletions

4. RunbookSettings: Main configuration container (HUB_RUNBOOKS_ prefix)
   - Hub connection (kubeconfig, context, timeout)
   - Nested ApplicationTarget, CleanupTarget, SecuritySettings
   - Log level and format

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

Hub connection:
    KUBECONFIG                        -> Kubeconfig file for the hub
    HUB_RUNBOOKS_CONTEXT              -> Kubeconfig context to use
    HUB_RUNBOOKS_REQUEST_TIMEOUT      -> Per-request timeout in seconds

Sync report:
    HUB_RUNBOOKS_APPLICATION__NAME      -> Application name (default: opp-policy)
    HUB_RUNBOOKS_APPLICATION__NAMESPACE -> Application namespace
    HUB_RUNBOOKS_GITOPS_NAMESPACE       -> Namespace of the ArgoCD controller
    HUB_RUNBOOKS_LOG_TAIL_LINES         -> Controller log lines to scan

Placeholder cleanup:
    HUB_RUNBOOKS_CLEANUP__CONFIGMAP_NAME  -> ConfigMap to delete
    HUB_RUNBOOKS_CLEANUP__KUBECONFIG_DIR  -> Where kubeconfigs are written

Security settings (RUNBOOK_ prefix):
    RUNBOOK_READ_ONLY     -> Block remediation patches (default: true)
    RUNBOOK_DRY_RUN       -> Report deletions without performing them
    RUNBOOK_AUDIT_LOG     -> Path to JSON-lines audit log file
    RUNBOOK_MASK_SECRETS  -> Mask tokens in printed log output (default: true)
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Kubernetes object names in these namespaces must be RFC 1123 labels
DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

# The hub's own registration as a managed cluster. It is never cleaned up.
LOCAL_CLUSTER = "local-cluster"

PLACEHOLDER_MARKERS = (
    "Placeholder for ODF SSL certificate bundle",
    "This will be populated by the certificate extraction job",
)


# =============================================================================
# SYNC REPORT TARGET
# =============================================================================


class ApplicationTarget(BaseModel):
    """
    The ArgoCD Application inspected by the sync report.

    WHY A SEPARATE CLASS?
    ---------------------
    The name and namespace travel together everywhere: the status query,
    the failed-resource query, and the patch commands printed in the
    recommendations all need both. Keeping them in one model means the
    recommendations can never drift from the Application actually checked.
    """

    model_config = {"extra": "ignore"}

    name: str = Field(default="opp-policy", description="Application name")

    namespace: str = Field(
        default="ramendr-starter-kit-hub",
        description="Namespace holding the Application resource",
    )

    @field_validator("name", "namespace")
    @classmethod
    def validate_dns_label(cls, v: str) -> str:
        """
        Normalize to lower case and require a valid DNS-1123 label.

        The API server would reject anything else with a 404 or 422, which
        the runbook would then report as "Unknown". Failing at startup makes
        a typo in the environment obvious instead.
        """
        v = v.strip().lower()
        if not DNS_LABEL.match(v):
            raise ValueError(f"'{v}' is not a valid Kubernetes name")
        return v


# =============================================================================
# CLEANUP TARGET
# =============================================================================


class CleanupTarget(BaseModel):
    """What the placeholder cleanup looks for on every managed cluster."""

    model_config = {"extra": "ignore"}

    configmap_name: str = Field(
        default="cluster-proxy-ca-bundle",
        description="ConfigMap that may hold placeholder content",
    )

    configmap_namespace: str = Field(
        default="openshift-config",
        description="Namespace of the placeholder ConfigMap",
    )

    data_key: str = Field(
        default="ca-bundle.crt",
        description="ConfigMap data key checked for placeholder text",
    )

    placeholder_markers: list[str] = Field(
        default_factory=lambda: list(PLACEHOLDER_MARKERS),
        description="Substrings that identify placeholder content",
    )
    # Matching is a plain substring test. If the job that writes the
    # placeholder changes its wording, detection stops silently; update
    # this list rather than loosening the match.

    kubeconfig_secret_pattern: str = Field(
        default=r"(admin-kubeconfig|kubeconfig)",
        description="Regex selecting the kubeconfig secret in a cluster namespace",
    )

    kubeconfig_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory receiving <cluster>-kubeconfig.yaml files",
    )

    skip_clusters: list[str] = Field(
        default_factory=list,
        description="Additional managed clusters to leave alone",
    )

    @field_validator("kubeconfig_secret_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Reject patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid kubeconfig secret pattern: {e}") from e
        return v

    def kubeconfig_path(self, cluster: str) -> Path:
        """Per-cluster kubeconfig handoff path."""
        return self.kubeconfig_dir / f"{cluster}-kubeconfig.yaml"

    def is_skipped(self, cluster: str) -> bool:
        """local-cluster is always skipped, whatever skip_clusters says."""
        return cluster == LOCAL_CLUSTER or cluster in self.skip_clusters


# =============================================================================
# SECURITY SETTINGS
# =============================================================================


class SecuritySettings(BaseSettings):
    """
    Safety switches for the two places a runbook writes to a cluster.

    WRITES IN THIS PACKAGE:
    -----------------------
    1. hub-sync-report --remediate patches the Application.
       Blocked while read_only is true (the default): printing advice is
       the runbook's job, changing the Application is an explicit opt-in.

    2. hub-placeholder-cleanup deletes the placeholder ConfigMap.
       This IS the runbook's job, so it is allowed by default. dry_run
       turns every deletion into a report of what would be deleted.
    """

    model_config = SettingsConfigDict(env_prefix="RUNBOOK_")

    read_only: bool = Field(
        default=True,
        description="Block remediation patches when true",
    )

    dry_run: bool = Field(
        default=False,
        description="Report deletions instead of performing them",
    )

    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )
    # When None, audit entries go through structlog like everything else.

    mask_secrets: bool = Field(
        default=True,
        description="Mask sensitive values in printed output",
    )
    # Controller logs occasionally echo bearer tokens and repo credentials.


# =============================================================================
# MAIN RUNBOOK SETTINGS
# =============================================================================


class RunbookSettings(BaseSettings):
    """
    Main runbook configuration.

    USAGE:
    ------
        settings = load_settings()
        print(settings.application.name)  # "opp-policy"
        print(settings.security.dry_run)  # False
    """

    model_config = SettingsConfigDict(
        env_prefix="HUB_RUNBOOKS_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # HUB CONNECTION
    # -------------------------------------------------------------------------

    kubeconfig: str | None = Field(
        default=None,
        validation_alias="KUBECONFIG",
        description="Kubeconfig for the hub cluster",
    )
    # May list several files joined by os.pathsep, exactly like KUBECONFIG.
    # None means: in-cluster service account if available, otherwise the
    # default ~/.kube/config, the same order kubectl and oc use.

    context: str | None = Field(
        default=None,
        description="Kubeconfig context for the hub cluster",
    )

    request_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Per-request timeout in seconds",
    )
    # Unset means the client library's own behaviour: wait until the API
    # server answers or the connection drops.

    # -------------------------------------------------------------------------
    # SYNC REPORT
    # -------------------------------------------------------------------------

    application: ApplicationTarget = Field(default_factory=ApplicationTarget)

    gitops_namespace: str = Field(
        default="openshift-gitops",
        description="Namespace running the ArgoCD application controller",
    )

    controller_selector: str = Field(
        default="app.kubernetes.io/name=argocd-application-controller",
        description="Label selector for ArgoCD application controller pods",
    )

    log_tail_lines: int = Field(
        default=20,
        ge=1,
        le=10000,
        description="Controller log lines to scan",
    )

    log_pattern: str = Field(
        default=r"sync|timeout|error",
        description="Case-insensitive regex applied to controller log lines",
    )

    policy_namespace: str = Field(
        default="policies",
        description="Namespace holding ACM policies and placements",
    )

    quota_pattern: str = Field(
        default=r"(openshift|policies)",
        description="Regex selecting quotas and limit ranges to show",
    )

    # -------------------------------------------------------------------------
    # PLACEHOLDER CLEANUP
    # -------------------------------------------------------------------------

    cleanup: CleanupTarget = Field(default_factory=CleanupTarget)

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="WARNING",
        description="Logging level",
    )
    # The runbooks print their report on stdout. Structured logs go to
    # stderr and stay quiet unless something went wrong.

    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )

    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept "debug" as well as "DEBUG"."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_pattern", "quota_pattern")
    @classmethod
    def validate_regex(cls, v: str) -> str:
        """Reject patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression '{v}': {e}") from e
        return v


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings(**overrides: object) -> RunbookSettings:
    """
    Load settings from environment with validation.

    Command-line flags arrive as keyword overrides and win over the
    environment. None values are dropped so an absent flag never masks an
    environment variable.

    OPTIONAL .env FILE:
    -------------------
    If HUB_RUNBOOKS_ENV_FILE is set, additional variables are read from
    that file. Useful for keeping per-hub settings next to the hub's
    kubeconfig.

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    return RunbookSettings(
        _env_file=os.environ.get("HUB_RUNBOOKS_ENV_FILE"),
        **values,
    )
