# ABOUTME: Unit tests for configuration management
# ABOUTME: Tests settings defaults, environment loading, and validation

import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from hub_runbooks.config import (
    LOCAL_CLUSTER,
    PLACEHOLDER_MARKERS,
    ApplicationTarget,
    CleanupTarget,
    RunbookSettings,
    SecuritySettings,
    load_settings,
)


@pytest.mark.unit
class TestApplicationTarget:
    """Tests for ApplicationTarget configuration."""

    def test_defaults(self):
        """Test the default Application is opp-policy on the starter kit hub."""
        target = ApplicationTarget()
        assert target.name == "opp-policy"
        assert target.namespace == "ramendr-starter-kit-hub"

    def test_name_lowercased(self):
        """Test that names are normalized to lower case."""
        target = ApplicationTarget(name="OPP-Policy", namespace=" Hub ")
        assert target.name == "opp-policy"
        assert target.namespace == "hub"

    def test_invalid_name_rejected(self):
        """Test that a name that is not a DNS label is rejected."""
        with pytest.raises(ValidationError):
            ApplicationTarget(name="opp_policy")

    def test_trailing_dash_rejected(self):
        """Test that a name ending in a dash is rejected."""
        with pytest.raises(ValidationError):
            ApplicationTarget(namespace="hub-")


@pytest.mark.unit
class TestCleanupTarget:
    """Tests for CleanupTarget configuration."""

    def test_defaults(self):
        """Test default ConfigMap coordinates and markers."""
        target = CleanupTarget()
        assert target.configmap_name == "cluster-proxy-ca-bundle"
        assert target.configmap_namespace == "openshift-config"
        assert target.data_key == "ca-bundle.crt"
        assert target.placeholder_markers == list(PLACEHOLDER_MARKERS)
        assert target.kubeconfig_dir == Path(tempfile.gettempdir())

    def test_placeholder_markers(self):
        """Test the two known placeholder phrases."""
        assert "Placeholder for ODF SSL certificate bundle" in PLACEHOLDER_MARKERS
        assert "This will be populated by the certificate extraction job" in PLACEHOLDER_MARKERS

    def test_kubeconfig_path_per_cluster(self, tmp_path: Path):
        """Test kubeconfig handoff path is predictable per cluster name."""
        target = CleanupTarget(kubeconfig_dir=tmp_path)
        assert target.kubeconfig_path("spoke-1") == tmp_path / "spoke-1-kubeconfig.yaml"
        assert target.kubeconfig_path("spoke-2") != target.kubeconfig_path("spoke-1")

    def test_local_cluster_always_skipped(self):
        """Test local-cluster is skipped even with an empty skip list."""
        target = CleanupTarget(skip_clusters=[])
        assert target.is_skipped(LOCAL_CLUSTER) is True
        assert target.is_skipped("spoke-1") is False

    def test_extra_skip_clusters(self):
        """Test additional clusters can be skipped."""
        target = CleanupTarget(skip_clusters=["spoke-2"])
        assert target.is_skipped("spoke-2") is True
        assert target.is_skipped(LOCAL_CLUSTER) is True

    def test_invalid_secret_pattern_rejected(self):
        """Test that an uncompilable regex is rejected."""
        with pytest.raises(ValidationError):
            CleanupTarget(kubeconfig_secret_pattern="(kubeconfig")


@pytest.mark.unit
class TestSecuritySettings:
    """Tests for SecuritySettings configuration."""

    def test_defaults(self):
        """Test default security settings."""
        settings = SecuritySettings()

        assert settings.read_only is True
        assert settings.dry_run is False
        assert settings.audit_log is None
        assert settings.mask_secrets is True

    def test_env_prefix(self):
        """Test environment variable prefix."""
        with patch.dict(os.environ, {"RUNBOOK_READ_ONLY": "false", "RUNBOOK_DRY_RUN": "true"}):
            settings = SecuritySettings()
            assert settings.read_only is False
            assert settings.dry_run is True


@pytest.mark.unit
class TestRunbookSettings:
    """Tests for RunbookSettings configuration."""

    def test_defaults(self):
        """Test default runbook settings."""
        settings = RunbookSettings()

        assert settings.kubeconfig is None
        assert settings.context is None
        assert settings.request_timeout is None
        assert settings.gitops_namespace == "openshift-gitops"
        assert settings.controller_selector == "app.kubernetes.io/name=argocd-application-controller"
        assert settings.log_tail_lines == 20
        assert settings.policy_namespace == "policies"
        assert settings.log_level == "WARNING"
        assert settings.log_json is False

    def test_kubeconfig_from_env(self):
        """Test KUBECONFIG is read without the HUB_RUNBOOKS_ prefix."""
        with patch.dict(os.environ, {"KUBECONFIG": "/etc/hub/kubeconfig"}):
            settings = RunbookSettings()
            assert settings.kubeconfig == "/etc/hub/kubeconfig"

    def test_nested_application_from_env(self):
        """Test nested Application target via double-underscore variables."""
        env = {
            "HUB_RUNBOOKS_APPLICATION__NAME": "other-app",
            "HUB_RUNBOOKS_APPLICATION__NAMESPACE": "other-ns",
        }
        with patch.dict(os.environ, env):
            settings = RunbookSettings()
            assert settings.application.name == "other-app"
            assert settings.application.namespace == "other-ns"

    def test_nested_cleanup_from_env(self):
        """Test nested cleanup target via double-underscore variables."""
        with patch.dict(os.environ, {"HUB_RUNBOOKS_CLEANUP__CONFIGMAP_NAME": "other-bundle"}):
            settings = RunbookSettings()
            assert settings.cleanup.configmap_name == "other-bundle"

    def test_log_level_normalized(self):
        """Test lower-case log levels are accepted."""
        settings = RunbookSettings(log_level="debug")
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            RunbookSettings(log_level="VERBOSE")

    def test_invalid_log_pattern_rejected(self):
        """Test that an uncompilable log pattern is rejected."""
        with pytest.raises(ValidationError):
            RunbookSettings(log_pattern="[sync")

    def test_request_timeout_must_be_positive(self):
        """Test that a zero timeout is rejected."""
        with pytest.raises(ValidationError):
            RunbookSettings(request_timeout=0)


@pytest.mark.unit
class TestLoadSettings:
    """Tests for load_settings."""

    def test_overrides_win(self):
        """Test keyword overrides take precedence over the environment."""
        with patch.dict(os.environ, {"HUB_RUNBOOKS_CONTEXT": "from-env"}):
            settings = load_settings(context="from-flag")
            assert settings.context == "from-flag"

    def test_none_overrides_ignored(self):
        """Test None overrides leave environment values in place."""
        with patch.dict(os.environ, {"HUB_RUNBOOKS_CONTEXT": "from-env"}):
            settings = load_settings(context=None, kubeconfig=None)
            assert settings.context == "from-env"

    def test_kubeconfig_override_by_field_name(self):
        """Test the kubeconfig flag maps onto the KUBECONFIG-aliased field."""
        settings = load_settings(kubeconfig="/tmp/hub.yaml")
        assert settings.kubeconfig == "/tmp/hub.yaml"

    def test_env_file(self, tmp_path: Path):
        """Test settings read from the file named by HUB_RUNBOOKS_ENV_FILE."""
        env_file = tmp_path / "hub.env"
        env_file.write_text("HUB_RUNBOOKS_GITOPS_NAMESPACE=argocd\n")
        with patch.dict(os.environ, {"HUB_RUNBOOKS_ENV_FILE": str(env_file)}):
            settings = load_settings()
            assert settings.gitops_namespace == "argocd"
