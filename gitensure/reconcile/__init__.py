"""Repository state reconciliation for gitensure."""

from .converge import ConvergenceResult, converge_repository
from .desired import desired_state_from_dict
from .executor import ConvergenceExecutor
from .gateway import CommandGateway, ExecutionScope, GitCapabilities, InvocationOptions
from .inspector import StateInspector
from .models import (
    ActualState,
    DesiredState,
    Ensure,
    Layout,
    NamedSources,
    PerRemoteProxy,
    SingleProxy,
    SingleSource,
)
from .remotes import RemoteReconciler, plan_remotes
from .resolver import RevisionResolver

__all__ = [
    'ActualState',
    'CommandGateway',
    'ConvergenceExecutor',
    'ConvergenceResult',
    'DesiredState',
    'Ensure',
    'ExecutionScope',
    'GitCapabilities',
    'InvocationOptions',
    'Layout',
    'NamedSources',
    'PerRemoteProxy',
    'RemoteReconciler',
    'RevisionResolver',
    'SingleProxy',
    'SingleSource',
    'StateInspector',
    'converge_repository',
    'desired_state_from_dict',
    'plan_remotes',
]
