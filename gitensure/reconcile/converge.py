"""One convergence cycle: compare a repository with its desired state and fix it."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import Config
from .executor import ConvergenceExecutor
from .models import DesiredState, Ensure, Layout
from .performance_logger import PerformanceLogger


@dataclass
class ConvergenceResult:
    """Result of a convergence cycle."""
    success: bool
    message: str
    operation: str
    changes: List[str] = field(default_factory=list)
    revision: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "operation": self.operation,
            "changes": list(self.changes),
            "revision": self.revision,
        }


def converge_repository(
    desired: DesiredState,
    config: Optional[Config] = None,
    executor: Optional[ConvergenceExecutor] = None
) -> ConvergenceResult:
    """
    Bring the repository at ``desired.path`` to the desired state.

    Creates or destroys the repository as needed, converts between layouts,
    and otherwise calls a property setter only where the current value
    differs from the desired one. Errors propagate to the caller.
    """
    logger = logging.getLogger('gitensure.reconcile.converge')
    config = config or Config()
    executor = executor or ConvergenceExecutor(desired, config)
    perf = PerformanceLogger(enabled=config.enable_performance_logging)
    changes: List[str] = []

    with perf.time_operation("exists"):
        exists = executor.exists()

    if desired.ensure == Ensure.ABSENT:
        if exists:
            with perf.time_operation("destroy"):
                executor.destroy()
            changes.append("destroyed")
        perf.log_performance_summary()
        return _result(desired, changes)

    if not exists:
        with perf.time_operation("create"):
            executor.create()
        changes.append("created")
        perf.log_performance_summary()
        return _result(desired, changes, _reported_revision(executor, desired))

    with perf.time_operation("layout"):
        changes += _converge_layout(executor, desired)

    if desired.source is not None:
        with perf.time_operation("source"):
            plan = executor.remotes.plan(desired.source, desired.remote, executor.inspector.remotes_of())
            if plan.operations or plan.recreate:
                executor.set_source(desired.source)
                changes.append("source changed")

    if not desired.is_bare_or_mirror:
        with perf.time_operation("revision"):
            if desired.ensure == Ensure.LATEST:
                if not executor.is_latest():
                    target = executor.latest()
                    if target:
                        executor.set_revision(target)
                        changes.append(f"revision changed to {target}")
            elif desired.revision and executor.get_revision() != desired.revision:
                executor.set_revision(desired.revision)
                changes.append(f"revision changed to {desired.revision}")

    if desired.skip_hooks is not None and executor.get_hooks_skip() != desired.skip_hooks:
        executor.set_hooks_skip(desired.skip_hooks)
        changes.append(f"skip_hooks changed to {str(desired.skip_hooks).lower()}")

    for change in changes:
        logger.info(f"{desired.path}: {change}")
    perf.log_performance_summary()
    return _result(desired, changes, _reported_revision(executor, desired))


def _converge_layout(executor: ConvergenceExecutor, desired: DesiredState) -> List[str]:
    """Layout conversions and mirror-flag toggles for an existing repository."""
    changes = []
    working_copy = executor.working_copy_exists()

    if desired.is_bare_or_mirror and working_copy:
        executor.convert_working_copy_to_bare()
        changes.append("converted to bare")
    elif not desired.is_bare_or_mirror and not working_copy and executor.bare_exists():
        executor.convert_bare_to_working_copy()
        changes.append("converted to working copy")
    elif desired.ensure == Ensure.MIRROR and not executor.is_mirror():
        executor.set_mirror()
        changes.append("mirror enabled")
    elif desired.ensure == Ensure.BARE and executor.is_mirror():
        executor.set_no_mirror()
        changes.append("mirror disabled")
    return changes


def _reported_revision(executor: ConvergenceExecutor, desired: DesiredState) -> Optional[str]:
    """Commit HEAD ends up at; None for a missing or empty repository."""
    if executor.inspector.layout_of() == Layout.MISSING:
        return None
    return executor.inspector.commit_of("HEAD")


def _result(desired: DesiredState, changes: List[str], revision: Optional[str] = None) -> ConvergenceResult:
    if changes:
        message = f"Repository {desired.path} converged: {', '.join(changes)}"
    else:
        message = f"Repository {desired.path} already in desired state"
    return ConvergenceResult(
        success=True,
        message=message,
        operation="converge_repository",
        changes=changes,
        revision=revision,
    )
