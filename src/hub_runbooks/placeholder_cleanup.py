# ABOUTME: Placeholder ConfigMap cleanup runbook for ACM managed clusters
# ABOUTME: Deletes cluster-proxy-ca-bundle from every managed cluster still holding placeholder text

"""
hub-placeholder-cleanup: remove placeholder CA bundle ConfigMaps.

=============================================================================
BACKGROUND
=============================================================================

A hub policy used to create a `cluster-proxy-ca-bundle` ConfigMap in
`openshift-config` on every managed cluster, filled with stand-in text until
a certificate extraction job replaced it. The policy was disabled before
every job ran, leaving clusters with a ConfigMap whose `ca-bundle.crt` is
just the placeholder sentence. This runbook finds and removes those.

=============================================================================
PROCEDURE
=============================================================================

For each ManagedCluster registered with the hub (local-cluster excluded):

1. Find the kubeconfig secret in the cluster's namespace on the hub
   (first secret whose name matches `admin-kubeconfig` or `kubeconfig`).
2. Decode its `kubeconfig` key and write it to
   <kubeconfig_dir>/<cluster>-kubeconfig.yaml.
3. Connect to the managed cluster with it and read the ConfigMap.
4. If the content contains a known placeholder phrase, delete the
   ConfigMap (already gone is fine). Otherwise leave it alone.

A cluster that fails at any step is reported and skipped; the loop always
reaches the last cluster. The run exits 1 only when the hub lists no
managed clusters at all.

The kubeconfig files are left in place after the run.
"""

from __future__ import annotations

import argparse
import base64
import binascii
import re
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from hub_runbooks import __version__
from hub_runbooks.config import load_settings
from hub_runbooks.utils.client import ClusterClient, ClusterError
from hub_runbooks.utils.logging import AuditLogger, configure_logging, set_correlation_id
from hub_runbooks.utils.safety import SafetyGuard

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

    from hub_runbooks.config import CleanupTarget, RunbookSettings

logger = structlog.get_logger(__name__)

KUBECONFIG_DATA_KEY = "kubeconfig"

# Per-cluster outcomes
DELETED = "deleted"
WOULD_DELETE = "would_delete"
CLEAN = "clean"
NO_KUBECONFIG = "no_kubeconfig"
ERROR = "error"


@dataclass
class ClusterCleanupResult:
    """What happened on one managed cluster."""

    cluster: str
    status: str
    detail: str | None = None


@dataclass
class CleanupSummary:
    """Results of a cleanup run, one entry per processed cluster."""

    results: list[ClusterCleanupResult] = field(default_factory=list)

    def add(self, result: ClusterCleanupResult) -> None:
        self.results.append(result)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def clusters(self) -> list[str]:
        return [r.cluster for r in self.results]

    def format_message(self) -> str:
        parts = [
            f"{self.count(DELETED)} deleted",
            f"{self.count(CLEAN)} clean",
            f"{self.count(NO_KUBECONFIG)} without kubeconfig",
            f"{self.count(ERROR)} failed",
        ]
        if self.count(WOULD_DELETE):
            parts.insert(1, f"{self.count(WOULD_DELETE)} would be deleted")
        return f"Processed {len(self.results)} cluster(s): " + ", ".join(parts)


def contains_placeholder(content: str, markers: Iterable[str]) -> bool:
    """Substring match against the known placeholder phrases."""
    return any(marker in content for marker in markers)


def select_kubeconfig_secret(secret_names: Iterable[str], pattern: str) -> str | None:
    """First secret name matching the kubeconfig pattern, or None."""
    regex = re.compile(pattern)
    for name in secret_names:
        if regex.search(name):
            return name
    return None


def fetch_kubeconfig(hub: ClusterClient, cluster: str, target: CleanupTarget) -> Path | None:
    """
    Extract a managed cluster's kubeconfig from the hub and write it to disk.

    ACM keeps each managed cluster's credentials in a secret inside the
    namespace named after the cluster (Hive-provisioned clusters use
    <cluster>-admin-kubeconfig, imported clusters an auto-import or
    kubeconfig secret).

    Returns:
        Path of the written kubeconfig, or None when no usable kubeconfig
        was found or it could not be written. Failures are logged, never
        raised.
    """
    log = logger.bind(cluster=cluster)

    try:
        secret_name = select_kubeconfig_secret(
            hub.list_secret_names(cluster), target.kubeconfig_secret_pattern
        )
        if secret_name is None:
            log.warning("No kubeconfig secret in cluster namespace")
            return None
        encoded = hub.get_secret_data(secret_name, cluster).get(KUBECONFIG_DATA_KEY)
    except ClusterError as e:
        log.warning("Could not read kubeconfig secret", error=str(e))
        return None

    if not encoded:
        log.warning("Kubeconfig secret has no kubeconfig key", secret=secret_name)
        return None

    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        log.warning("Kubeconfig secret is not valid base64", secret=secret_name, error=str(e))
        return None

    if not raw.strip():
        log.warning("Kubeconfig secret is empty", secret=secret_name)
        return None

    path = target.kubeconfig_path(cluster)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw)
        path.chmod(0o600)
    except OSError as e:
        log.warning("Could not write kubeconfig", path=str(path), error=str(e))
        return None
    log.debug("Wrote kubeconfig", path=str(path), secret=secret_name)
    return path


def read_placeholder_content(client: ClusterClient, target: CleanupTarget) -> str:
    """ConfigMap content under the data key, "" when it cannot be read."""
    try:
        data = client.get_configmap_data(target.configmap_name, target.configmap_namespace)
    except ClusterError as e:
        if not e.not_found:
            logger.warning("Could not read ConfigMap", cluster=client.name, error=str(e))
        return ""
    return data.get(target.data_key, "")


def cleanup_cluster(
    client: ClusterClient,
    target: CleanupTarget,
    guard: SafetyGuard,
    audit: AuditLogger,
) -> ClusterCleanupResult:
    """Inspect one managed cluster and delete the placeholder ConfigMap if found."""
    cluster = client.name
    ref = f"{cluster}/{target.configmap_namespace}/{target.configmap_name}"

    content = read_placeholder_content(client, target)
    if not contains_placeholder(content, target.placeholder_markers):
        print(f"  ✅ {cluster}: No placeholder ConfigMap found")
        return ClusterCleanupResult(cluster, CLEAN)

    skipped = guard.check_destructive_operation("delete_configmap", ref)
    if skipped:
        audit.log_write(
            "delete_configmap",
            ref,
            "dry_run",
            {"reason": skipped.reason, "impact": skipped.impact},
        )
        print(f"  🔍 {cluster}: Placeholder ConfigMap found, not deleting (dry run)")
        return ClusterCleanupResult(cluster, WOULD_DELETE)

    print(f"  🗑️  Deleting placeholder ConfigMap from {cluster}...")
    try:
        deleted = client.delete_configmap(
            target.configmap_name,
            target.configmap_namespace,
            ignore_not_found=True,
        )
    except ClusterError as e:
        audit.log_error("delete_configmap", ref, str(e))
        print(f"  ❌ {cluster}: Could not delete placeholder ConfigMap: {e}")
        return ClusterCleanupResult(cluster, ERROR, str(e))

    audit.log_write("delete_configmap", ref, "deleted", {"already_absent": not deleted})
    print(f"  ✅ Placeholder ConfigMap removed from {cluster}")
    return ClusterCleanupResult(cluster, DELETED)


def connect_managed_cluster(
    kubeconfig: Path,
    cluster: str,
    settings: RunbookSettings,
) -> ClusterClient:
    """Build a client for a managed cluster from its extracted kubeconfig."""
    return ClusterClient.from_kubeconfig(
        config_file=str(kubeconfig),
        name=cluster,
        request_timeout=settings.request_timeout,
        mask_secrets=settings.security.mask_secrets,
    )


def run_cleanup(
    hub: ClusterClient,
    settings: RunbookSettings,
    guard: SafetyGuard,
    audit: AuditLogger,
    connect: Callable[[Path, str, RunbookSettings], ClusterClient] = connect_managed_cluster,
) -> CleanupSummary | None:
    """
    Run the cleanup over every managed cluster.

    Returns:
        The run summary, or None when the hub lists no managed clusters.
    """
    target = settings.cleanup

    try:
        clusters = hub.list_managed_cluster_names()
    except ClusterError as e:
        logger.warning("Could not list managed clusters", error=str(e))
        clusters = []

    if not clusters:
        print("No managed clusters found")
        return None

    print(f"Found managed clusters: {' '.join(clusters)}")
    audit.log_read("list_managed_clusters", hub.name)

    summary = CleanupSummary()
    for cluster in clusters:
        if target.is_skipped(cluster):
            logger.debug("Skipping cluster", cluster=cluster)
            continue

        with structlog.contextvars.bound_contextvars(cluster=cluster):
            print(f"Checking {cluster} for placeholder ConfigMaps...")

            kubeconfig = fetch_kubeconfig(hub, cluster, target)
            if kubeconfig is None:
                print(f"  ❌ {cluster}: Could not get kubeconfig for cleanup")
                summary.add(ClusterCleanupResult(cluster, NO_KUBECONFIG))
                continue

            try:
                client = connect(kubeconfig, cluster, settings)
            except ClusterError as e:
                # An unusable kubeconfig is reported like a missing one
                print(f"  ❌ {cluster}: Could not get kubeconfig for cleanup")
                summary.add(ClusterCleanupResult(cluster, NO_KUBECONFIG, str(e)))
                continue

            with client:
                summary.add(cleanup_cluster(client, target, guard, audit))

    return summary


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hub-placeholder-cleanup",
        description=(
            "Delete placeholder cluster-proxy-ca-bundle ConfigMaps from every "
            "managed cluster registered with the hub."
        ),
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="report what would be deleted without deleting",
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
    """Run the cleanup. Returns 1 when the hub has no managed clusters."""
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

    if args.dry_run:
        settings.security = settings.security.model_copy(update={"dry_run": True})

    configure_logging(level=settings.log_level, json_output=settings.log_json)
    guard = SafetyGuard(settings.security)
    audit = AuditLogger(settings.security.audit_log)

    print("🧹 Cleaning up placeholder ConfigMaps from managed clusters...")

    try:
        hub = ClusterClient.from_kubeconfig(
            config_file=settings.kubeconfig,
            context=settings.context,
            request_timeout=settings.request_timeout,
            mask_secrets=settings.security.mask_secrets,
        )
    except ClusterError as e:
        logger.warning("Could not connect to the hub cluster", error=str(e))
        print("No managed clusters found")
        return 1

    try:
        with hub:
            summary = run_cleanup(hub, settings, guard, audit)
    except KeyboardInterrupt:
        logger.info("Cleanup interrupted")
        return 130

    if summary is None:
        return 1

    logger.info("Cleanup finished", clusters=summary.clusters, failed=summary.count(ERROR))
    print(summary.format_message())
    print("✅ Placeholder ConfigMap cleanup completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
