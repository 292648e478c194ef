"""Deployment lifecycle tracking and admin notification."""

from eviction_crm.services.deployment.monitor import DeploymentMonitor, check_transition
from eviction_crm.services.deployment.notifier import (
    DeploymentNotifier,
    EmailDeploymentNotifier,
    NullNotifier,
)

__all__ = [
    "DeploymentMonitor",
    "DeploymentNotifier",
    "EmailDeploymentNotifier",
    "NullNotifier",
    "check_transition",
]
