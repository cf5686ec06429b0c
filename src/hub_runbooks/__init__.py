# ABOUTME: Hub runbooks package initialization
# ABOUTME: Exposes version information for the GitOps hub runbook commands

"""
Hub Runbooks - operational runbooks for an ACM/OpenShift GitOps hub.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

Two command-line runbooks that an operator runs against the hub cluster:

1. hub-sync-report
   Inspects one ArgoCD Application custom resource and the cluster state
   around it (controller logs, quotas, policy resources), then prints
   remediation advice for sync timeouts.

2. hub-placeholder-cleanup
   Walks every managed cluster registered with the hub, borrows its
   kubeconfig from the hub's secrets, and deletes the placeholder
   cluster-proxy-ca-bundle ConfigMap when it still carries placeholder text.

Both are strictly sequential: call the Kubernetes API, look at the answer,
print what was found. Failed lookups degrade to fallback text instead of
aborting the run.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

hub_runbooks/
├── __init__.py             <- YOU ARE HERE: Package entry point
├── config.py               <- Configuration management (env vars, settings)
├── sync_report.py          <- hub-sync-report runbook
├── placeholder_cleanup.py  <- hub-placeholder-cleanup runbook
└── utils/
    ├── __init__.py         <- Utils subpackage marker
    ├── client.py           <- Kubernetes API wrapper with structured errors
    ├── logging.py          <- Structured logging with audit trails
    └── safety.py           <- Read-only and dry-run guards
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
