# ABOUTME: ArgoCD sync troubleshooting runbook for the GitOps hub
# ABOUTME: Reports Application status, controller logs, quotas, policies, and remediation advice

"""
hub-sync-report: troubleshoot ArgoCD sync timeouts on the hub.

Runs five read-only checks against the hub cluster and prints a fixed block
of recommendations:

1. Application sync/health status and last operation message
2. Resources that failed in the last sync
3. ArgoCD application controller logs mentioning sync, timeout or error
4. Resource quotas, limit ranges and node usage
5. ACM policies, placement rules and placement bindings

Every check degrades to a fallback line when its lookup fails; the report
always runs to the end. The exit status is 0 only when the Application is
Synced.

With --remediate, one of the two patches from the recommendations is
applied to the Application afterwards (requires RUNBOOK_READ_ONLY=false).
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from hub_runbooks import __version__
from hub_runbooks.config import load_settings
from hub_runbooks.utils.client import ClusterClient, ClusterError
from hub_runbooks.utils.logging import AuditLogger, configure_logging, set_correlation_id
from hub_runbooks.utils.safety import SafetyGuard

if TYPE_CHECKING:
    from collections.abc import Callable

    from hub_runbooks.config import ApplicationTarget, RunbookSettings

logger = structlog.get_logger(__name__)

# Merge patches offered in the recommendations and applied by --remediate
REMEDIATION_PATCHES: dict[str, dict[str, Any]] = {
    "sync-timeout": {"spec": {"syncPolicy": {"syncOptions": ["syncTimeout=7200s"]}}},
    "force-sync": {"operation": {"sync": {"syncStrategy": {"hook": {}}}}},
}


class SyncOutcome(Enum):
    """Classification of an Application's sync status."""

    SYNCED = "synced"
    OUT_OF_SYNC = "out_of_sync"
    ERROR = "error"

    @property
    def ok(self) -> bool:
        return self is SyncOutcome.SYNCED


def classify_sync_status(sync_status: str) -> SyncOutcome:
    """Synced is success, OutOfSync is a warning, anything else is an error."""
    if sync_status == "OutOfSync":
        return SyncOutcome.OUT_OF_SYNC
    if sync_status == "Synced":
        return SyncOutcome.SYNCED
    return SyncOutcome.ERROR


def patch_command(target: ApplicationTarget, patch: dict[str, Any]) -> str:
    """Render the oc command applying a merge patch to the Application."""
    body = json.dumps(patch, separators=(",", ":"))
    return (
        f"oc patch applications.argoproj.io {target.name} -n {target.namespace} "
        f"--type=merge --patch='{body}'"
    )


class UnreachableCluster:
    """Hub stand-in used when no client could be built.

    Every lookup raises the connection error, so each check prints its
    fallback line and the report still runs to the end.
    """

    name = "hub"

    def __init__(self, error: ClusterError) -> None:
        self._error = error

    def __getattr__(self, attr: str) -> Callable[..., Any]:
        def fail(*args: Any, **kwargs: Any) -> Any:
            raise self._error

        return fail

    def __enter__(self) -> UnreachableCluster:
        return self

    def __exit__(self, *args: object) -> None:
        pass


# =============================================================================
# CHECKS
# =============================================================================


def check_application_status(client: ClusterClient, settings: RunbookSettings) -> SyncOutcome:
    """Print sync and health status and the last operation, then classify."""
    target = settings.application
    print(f"Checking application: {target.name} in namespace: {target.namespace}")

    sync_status = "Unknown"
    health_status = "Unknown"
    message = "No message"
    phase = "Unknown"
    try:
        app = client.get_application(target.name, target.namespace)
    except ClusterError as e:
        logger.warning("Could not read application", application=target.name, error=str(e))
    else:
        sync_status = app.sync_status
        health_status = app.health_status
        message = app.operation_message or "No message"
        phase = app.operation_phase or "Unknown"

    print(f"  Sync Status: {sync_status}")
    print(f"  Health Status: {health_status}")
    print(f"  Message: {message}")
    print(f"  Operation Phase: {phase}")

    outcome = classify_sync_status(sync_status)
    if outcome is SyncOutcome.OUT_OF_SYNC:
        print("  ⚠️  Application is OutOfSync")
    elif outcome is SyncOutcome.SYNCED:
        print("  ✅ Application is Synced")
    else:
        print("  ❌ Application has issues")
    return outcome


def check_failed_resources(client: ClusterClient, settings: RunbookSettings) -> None:
    """Print resources whose last sync result is SyncFailed."""
    target = settings.application
    print(f"Checking for failed resources in {target.name}...")

    try:
        failed = client.get_application(target.name, target.namespace).failed_resources
    except ClusterError as e:
        logger.warning("Could not read sync result", application=target.name, error=str(e))
        failed = []

    if not failed:
        print("No failed resources found")
        return

    for resource in failed:
        print(
            f"{resource.get('kind', '')}/{resource.get('name', '')} "
            f"in {resource.get('namespace', '')}: {resource.get('message', '')}"
        )


def check_controller_logs(client: ClusterClient, settings: RunbookSettings) -> None:
    """Scan the first application controller pod's recent log for sync problems."""
    print("Checking ArgoCD controller logs for sync issues...")

    try:
        pods = client.list_pod_names(settings.gitops_namespace, settings.controller_selector)
    except ClusterError as e:
        logger.warning("Could not list controller pods", error=str(e))
        pods = []

    if not pods:
        print("No ArgoCD controller pods found")
        return

    print(f"Found ArgoCD controller pods: {' '.join(pods)}")
    print(f"Recent controller logs (last {settings.log_tail_lines} lines):")

    try:
        text = client.read_pod_log(pods[0], settings.gitops_namespace, settings.log_tail_lines)
    except ClusterError as e:
        logger.warning("Could not read controller log", pod=pods[0], error=str(e))
        text = ""

    pattern = re.compile(settings.log_pattern, re.I)
    matches = [line for line in text.splitlines() if pattern.search(line)]
    if not matches:
        print("No sync-related errors found in logs")
        return
    for line in matches:
        print(line)


def _format_quota(quota: dict[str, Any]) -> str:
    metadata = quota.get("metadata") or {}
    status = quota.get("status") or {}
    hard = status.get("hard") or {}
    used = status.get("used") or {}
    usage = ", ".join(f"{res}: {used.get(res, '0')}/{limit}" for res, limit in sorted(hard.items()))
    return f"  {metadata.get('namespace', '')}/{metadata.get('name', '')}  {usage}".rstrip()


def _format_limit_range(limit_range: dict[str, Any]) -> str:
    metadata = limit_range.get("metadata") or {}
    limits = (limit_range.get("spec") or {}).get("limits") or []
    kinds = ",".join(limit.get("type", "") for limit in limits)
    return f"  {metadata.get('namespace', '')}/{metadata.get('name', '')}  types={kinds}"


def _matches(item: dict[str, Any], pattern: re.Pattern[str]) -> bool:
    metadata = item.get("metadata") or {}
    return bool(pattern.search(f"{metadata.get('namespace', '')} {metadata.get('name', '')}"))


def check_resource_limits(client: ClusterClient, settings: RunbookSettings) -> None:
    """Print matching quotas and limit ranges, then node resource usage."""
    print("Checking resource quotas and limits...")
    pattern = re.compile(settings.quota_pattern)

    try:
        quotas = [q for q in client.list_resource_quotas() if _matches(q, pattern)]
    except ClusterError as e:
        logger.warning("Could not list resource quotas", error=str(e))
        quotas = []
    if quotas:
        for quota in quotas:
            print(_format_quota(quota))
    else:
        print("No resource quotas found")

    try:
        ranges = [r for r in client.list_limit_ranges() if _matches(r, pattern)]
    except ClusterError as e:
        logger.warning("Could not list limit ranges", error=str(e))
        ranges = []
    if ranges:
        for limit_range in ranges:
            print(_format_limit_range(limit_range))
    else:
        print("No limit ranges found")

    print("Node resource usage:")
    try:
        nodes = client.list_node_metrics()
    except ClusterError as e:
        logger.warning("Could not read node metrics", error=str(e))
        nodes = []
    if not nodes:
        print("Could not get node resource usage")
        return
    for node in sorted(nodes, key=lambda n: (n.get("metadata") or {}).get("name", "")):
        usage = node.get("usage") or {}
        print(
            f"  {(node.get('metadata') or {}).get('name', '')}  "
            f"cpu={usage.get('cpu', '-')}  memory={usage.get('memory', '-')}"
        )


def _print_objects(
    kind_label: str,
    fetch: Callable[[str], list[dict[str, Any]]],
    namespace: str,
    fallback: str,
    describe: Callable[[dict[str, Any]], str],
) -> None:
    print(f"{kind_label} in {namespace} namespace:")
    try:
        items = fetch(namespace)
    except ClusterError as e:
        logger.warning("Could not list resources", kind=kind_label, error=str(e))
        items = []
    if not items:
        print(fallback)
        return
    for item in items:
        print(f"  {(item.get('metadata') or {}).get('name', '')}  {describe(item)}".rstrip())


def check_policy_resources(client: ClusterClient, settings: RunbookSettings) -> None:
    """Print ACM policies, placement rules and placement bindings."""
    print("Checking policy-related resources...")
    namespace = settings.policy_namespace

    _print_objects(
        "Policies",
        client.list_policies,
        namespace,
        "No policies found",
        lambda p: (
            f"remediation={(p.get('spec') or {}).get('remediationAction', '-')}  "
            f"compliance={(p.get('status') or {}).get('compliant', '-')}"
        ),
    )
    _print_objects(
        "PlacementRules",
        client.list_placement_rules,
        namespace,
        "No placement rules found",
        lambda r: f"decisions={len((r.get('status') or {}).get('decisions') or [])}",
    )
    _print_objects(
        "PlacementBindings",
        client.list_placement_bindings,
        namespace,
        "No placement bindings found",
        lambda b: f"placementRef={(b.get('placementRef') or {}).get('name', '-')}",
    )


def provide_recommendations(settings: RunbookSettings) -> None:
    """Print the fixed remediation advice."""
    target = settings.application
    lines = [
        "",
        "Recommendations:",
        "===============",
        "",
        "1. If sync timeout persists:",
        "   - Increase syncTimeout in values-hub.yaml (currently 3600s)",
        "   - Consider breaking complex policies into smaller ones",
        "   - Check for resource constraints",
        "",
        "2. If PlacementRule issues:",
        "   - Verify ACM is properly installed",
        "   - Check API version compatibility",
        "   - Consider using simpler placement logic",
        "",
        "3. If policy complexity issues:",
        "   - Use the simplified policy (policy-cluster-proxy-ca-simple.yaml)",
        "   - Remove complex inline scripts",
        "   - Use separate jobs for complex operations",
        "",
        "4. Manual sync trigger:",
        f"   {patch_command(target, REMEDIATION_PATCHES['sync-timeout'])}",
        "",
        "5. Force sync:",
        f"   {patch_command(target, REMEDIATION_PATCHES['force-sync'])}",
    ]
    print("\n".join(lines))


def apply_remediation(
    client: ClusterClient,
    settings: RunbookSettings,
    guard: SafetyGuard,
    audit: AuditLogger,
    remediation: str,
) -> bool:
    """Apply one of the recommended patches, if the safety guard allows it."""
    target = settings.application
    ref = f"{client.name}/{target.namespace}/{target.name}"
    patch = REMEDIATION_PATCHES[remediation]

    print("")
    print(f"Applying remediation '{remediation}' to {target.name}...")

    blocked = guard.check_write_operation("patch_application")
    if blocked:
        audit.log_blocked("patch_application", ref, blocked.reason)
        print(blocked.format_message())
        return False

    try:
        client.patch_application(target.name, target.namespace, patch)
    except ClusterError as e:
        audit.log_error("patch_application", ref, str(e))
        print(f"  ❌ Patch failed: {e}")
        return False

    audit.log_write("patch_application", ref, "patched", {"remediation": remediation, "patch": patch})
    print(f"  ✅ Applied {remediation} patch to {target.name}")
    return True


def run_report(
    client: ClusterClient,
    settings: RunbookSettings,
    guard: SafetyGuard,
    audit: AuditLogger,
    remediation: str | None = None,
) -> SyncOutcome:
    """Run all checks in order and return the Application's sync outcome."""
    print("Starting ArgoCD sync troubleshooting...")
    print("")

    print("1. Checking application status...")
    outcome = check_application_status(client, settings)
    audit.log_read("check_application_status", settings.application.name)
    print("")

    print("2. Checking for failed resources...")
    check_failed_resources(client, settings)
    print("")

    print("3. Checking ArgoCD controller logs...")
    check_controller_logs(client, settings)
    print("")

    print("4. Checking resource limits...")
    check_resource_limits(client, settings)
    print("")

    print("5. Checking policy resources...")
    check_policy_resources(client, settings)
    print("")

    provide_recommendations(settings)

    if remediation:
        apply_remediation(client, settings, guard, audit, remediation)

    return outcome


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hub-sync-report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=(
            "This script helps troubleshoot ArgoCD sync timeout issues by:\n"
            "1. Checking application status\n"
            "2. Identifying failed resources\n"
            "3. Checking controller logs\n"
            "4. Verifying resource limits\n"
            "5. Providing recommendations"
        ),
    )
    parser.add_argument(
        "--remediate",
        choices=sorted(REMEDIATION_PATCHES),
        help="apply a recommended patch after the report (needs RUNBOOK_READ_ONLY=false)",
    )
    parser.add_argument("--kubeconfig", help="kubeconfig for the hub cluster")
    parser.add_argument("--context", help="kubeconfig context for the hub cluster")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="structured log level (logs go to stderr)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the sync report. Returns 0 when the Application is Synced."""
    args = build_parser().parse_args(argv)

    set_correlation_id("")
    configure_logging()

    try:
        settings = load_settings(
            kubeconfig=args.kubeconfig,
            context=args.context,
            log_level=args.log_level,
        )
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    configure_logging(level=settings.log_level, json_output=settings.log_json)
    guard = SafetyGuard(settings.security)
    audit = AuditLogger(settings.security.audit_log)

    print("ArgoCD Sync Troubleshooting Script")
    print("==================================")

    try:
        client = ClusterClient.from_kubeconfig(
            config_file=settings.kubeconfig,
            context=settings.context,
            request_timeout=settings.request_timeout,
            mask_secrets=settings.security.mask_secrets,
        )
    except ClusterError as e:
        logger.warning("Could not connect to the hub cluster", error=str(e))
        print(f"❌ Could not connect to the hub cluster: {e}")
        client = UnreachableCluster(e)

    try:
        with client:
            outcome = run_report(client, settings, guard, audit, remediation=args.remediate)
    except KeyboardInterrupt:
        logger.info("Sync report interrupted")
        return 130

    logger.info("Sync report finished", outcome=outcome.value)
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    sys.exit(main())
