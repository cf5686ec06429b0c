# ABOUTME: Utilities package initialization for the hub runbooks
# ABOUTME: Contains shared utilities for the cluster client, safety, and logging

"""
Hub Runbooks Utilities Package

Shared utilities:
    - client.py: Kubernetes API client wrapper with structured errors
    - safety.py: Read-only and dry-run guards for writes and deletions
    - logging.py: Structured logging with correlation IDs and audit trail
"""
