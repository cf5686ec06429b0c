# ABOUTME: Pytest fixtures and configuration for hub runbook tests
# ABOUTME: Provides shared settings, mocked cluster clients, and sample API objects

import os
from pathlib import Path
from typing import Any, Iterator
from unittest.mock import MagicMock

import pytest

from hub_runbooks.config import CleanupTarget, RunbookSettings, SecuritySettings
from hub_runbooks.utils.client import Application, ClusterClient
from hub_runbooks.utils.logging import AuditLogger, configure_logging
from hub_runbooks.utils.safety import SafetyGuard

@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of settings under test."""
    for name in list(os.environ):
        if name.startswith(("HUB_RUNBOOKS_", "RUNBOOK_")) or name == "KUBECONFIG":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def security_settings() -> SecuritySettings:
    """Security settings with cluster writes allowed."""
    return SecuritySettings(
        read_only=False,
        dry_run=False,
        audit_log=None,
        mask_secrets=True,
    )


@pytest.fixture
def read_only_security_settings() -> SecuritySettings:
    """Default-style security settings: patches blocked, deletes allowed."""
    return SecuritySettings(read_only=True, dry_run=False, audit_log=None, mask_secrets=True)


@pytest.fixture
def dry_run_security_settings() -> SecuritySettings:
    """Security settings with dry run on."""
    return SecuritySettings(read_only=True, dry_run=True, audit_log=None, mask_secrets=True)


@pytest.fixture
def settings(tmp_path: Path, security_settings: SecuritySettings) -> RunbookSettings:
    """Runbook settings writing kubeconfigs under a temporary directory."""
    return RunbookSettings(
        cleanup=CleanupTarget(kubeconfig_dir=tmp_path / "kubeconfigs"),
        security=security_settings,
    )


@pytest.fixture
def safety_guard(security_settings: SecuritySettings) -> SafetyGuard:
    return SafetyGuard(security_settings)


@pytest.fixture
def read_only_safety_guard(read_only_security_settings: SecuritySettings) -> SafetyGuard:
    return SafetyGuard(read_only_security_settings)


@pytest.fixture
def dry_run_safety_guard(dry_run_security_settings: SecuritySettings) -> SafetyGuard:
    return SafetyGuard(dry_run_security_settings)


@pytest.fixture
def audit_logger() -> MagicMock:
    """Audit logger double recording calls."""
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def synced_application() -> Application:
    """A healthy, synced Application."""
    return Application(
        name="opp-policy",
        namespace="ramendr-starter-kit-hub",
        sync_status="Synced",
        health_status="Healthy",
        operation_phase="Succeeded",
        operation_message="successfully synced (all tasks run)",
    )


@pytest.fixture
def out_of_sync_application() -> Application:
    """An OutOfSync Application whose last sync failed on two resources."""
    return Application(
        name="opp-policy",
        namespace="ramendr-starter-kit-hub",
        sync_status="OutOfSync",
        health_status="Degraded",
        operation_phase="Failed",
        operation_message="one or more objects failed to apply",
        sync_resources=[
            {
                "kind": "Policy",
                "name": "policy-cluster-proxy-ca",
                "namespace": "policies",
                "status": "SyncFailed",
                "message": "context deadline exceeded",
            },
            {
                "kind": "PlacementRule",
                "name": "placement-all",
                "namespace": "policies",
                "status": "Synced",
                "message": "placementrule configured",
            },
            {
                "kind": "PlacementBinding",
                "name": "binding-cluster-proxy-ca",
                "namespace": "policies",
                "status": "SyncFailed",
                "message": "the server could not find the requested resource",
            },
        ],
    )


@pytest.fixture
def mock_hub_client(synced_application: Application) -> MagicMock:
    """Hub client double with healthy defaults for every lookup."""
    client = MagicMock(spec=ClusterClient)
    client.name = "hub"

    client.get_application.return_value = synced_application
    client.list_pod_names.return_value = ["openshift-gitops-application-controller-0"]
    client.read_pod_log.return_value = ""
    client.list_resource_quotas.return_value = []
    client.list_limit_ranges.return_value = []
    client.list_node_metrics.return_value = [
        {"metadata": {"name": "master-0"}, "usage": {"cpu": "812m", "memory": "9876Mi"}}
    ]
    client.list_policies.return_value = []
    client.list_placement_rules.return_value = []
    client.list_placement_bindings.return_value = []
    client.list_managed_cluster_names.return_value = []
    client.list_secret_names.return_value = []
    client.get_secret_data.return_value = {}
    client.__enter__.return_value = client
    return client


def make_managed_client(name: str, configmap_data: dict[str, Any] | None = None) -> MagicMock:
    """Managed-cluster client double serving one ConfigMap."""
    client = MagicMock(spec=ClusterClient)
    client.name = name
    client.get_configmap_data.return_value = configmap_data or {}
    client.delete_configmap.return_value = True
    client.__enter__.return_value = client
    return client


@pytest.fixture
def managed_client_factory() -> Iterator[Any]:
    """Factory building managed-cluster client doubles, keyed by cluster."""
    clients: dict[str, MagicMock] = {}

    def factory(name: str, configmap_data: dict[str, Any] | None = None) -> MagicMock:
        clients[name] = make_managed_client(name, configmap_data)
        return clients[name]

    factory.clients = clients  # type: ignore[attr-defined]
    yield factory


@pytest.fixture(autouse=True)
def quiet_logging() -> None:
    """Silence structlog so runbook output under test is only the report."""
    configure_logging(level="CRITICAL")
