"""Deployment exports."""

from .deployment_copier import (
    DeploymentAction,
    DeploymentEntry,
    DeploymentError,
    DeploymentFailure,
    DeploymentPlan,
    DeploymentReport,
    deploy_entity,
    execute_deployment,
    plan_deployment,
)

__all__ = [
    "DeploymentAction",
    "DeploymentEntry",
    "DeploymentError",
    "DeploymentFailure",
    "DeploymentPlan",
    "DeploymentReport",
    "deploy_entity",
    "execute_deployment",
    "plan_deployment",
]
