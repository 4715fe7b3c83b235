"""Reconciliation of declared remotes against the remotes of a repository."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from .gateway import CommandGateway, ExecutionScope
from .models import NamedSources, SingleSource, SourceSpec


class RemoteAction(Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class RemoteOperation:
    action: RemoteAction
    name: str
    url: Optional[str] = None


@dataclass
class RemotePlan:
    """Ordered remote changes, or a request to recreate the repository."""
    operations: List[RemoteOperation] = field(default_factory=list)
    recreate: bool = False

    @property
    def changed(self) -> bool:
        """Whether anything was added or updated (removals need no refresh)."""
        return any(op.action in (RemoteAction.ADD, RemoteAction.UPDATE) for op in self.operations)

    def removals(self) -> List[str]:
        return [op.name for op in self.operations if op.action == RemoteAction.REMOVE]


def source_from_remotes(remotes: Mapping[str, str]) -> SourceSpec:
    """Describe actual remotes the way a source is declared."""
    if len(remotes) == 1:
        return SingleSource(next(iter(remotes.values())))
    return NamedSources(dict(remotes))


def plan_remotes(desired: SourceSpec, remote: str, actual: Mapping[str, str]) -> RemotePlan:
    """
    Compute the operations turning ``actual`` remotes into ``desired``.

    A single actual remote and a single desired URL that differ cannot be
    updated in place: that is treated as a different repository and reported
    through ``recreate``.
    """
    plan = RemotePlan()
    if desired is None:
        return plan

    if len(actual) > 1:
        for name in actual:
            if isinstance(desired, NamedSources) and name not in desired.remotes:
                plan.operations.append(RemoteOperation(RemoteAction.REMOVE, name))
            elif isinstance(desired, SingleSource) and name != remote:
                plan.operations.append(RemoteOperation(RemoteAction.REMOVE, name))
    elif len(actual) == 1 and isinstance(desired, SingleSource):
        name, url = next(iter(actual.items()))
        if name != remote or url != desired.url:
            plan.recreate = True
        return plan

    if isinstance(desired, SingleSource):
        wanted: Dict[str, str] = {remote: desired.url}
    else:
        wanted = dict(desired.remotes)

    for name in sorted(wanted):
        url = wanted[name]
        if url is None:
            continue
        if name not in actual:
            plan.operations.append(RemoteOperation(RemoteAction.ADD, name, url))
        elif actual[name] != url:
            plan.operations.append(RemoteOperation(RemoteAction.UPDATE, name, url))
    return plan


class RemoteReconciler:
    """Plans and applies remote changes for one repository."""

    def __init__(self, gateway: CommandGateway, scope: ExecutionScope):
        self.gateway = gateway
        self.scope = scope
        self.logger = logging.getLogger('gitensure.reconcile.remotes')

    def plan(self, desired: SourceSpec, remote: str, actual: Mapping[str, str]) -> RemotePlan:
        plan = plan_remotes(desired, remote, actual)
        self.logger.debug(f"Remote plan: {plan}")
        return plan

    def remove_remote(self, name: str) -> None:
        self.logger.info(f"Removing remote '{name}'")
        self.gateway.run(self.scope, "remote", "remove", name)

    def apply(self, plan: RemotePlan) -> bool:
        """
        Execute ``plan``; returns whether any remote was added or updated.

        Remote-tracking refs are refreshed once, and only when something
        was added or updated.
        """
        for op in plan.operations:
            if op.action == RemoteAction.REMOVE:
                self.remove_remote(op.name)
            elif op.action == RemoteAction.ADD:
                self.logger.info(f"Adding remote '{op.name}' ({op.url})")
                self.gateway.run(self.scope, "remote", "add", op.name, op.url)
            else:
                self.logger.info(f"Updating URL of remote '{op.name}' to {op.url}")
                self.gateway.run(self.scope, "remote", "set-url", op.name, op.url)

        if plan.changed:
            self.gateway.run(self.scope, "remote", "update", network=True)
        return plan.changed

    def update_references(self, remote: str) -> None:
        """Fetch branches and tags of ``remote``, following moved tags where git allows."""
        self.gateway.run(self.scope, "fetch", remote, network=True)
        fetch_tags = ["fetch", "--tags"]
        if self.gateway.capabilities.supports_forced_tag_fetch:
            fetch_tags.append("--force")
        self.gateway.run(self.scope, *fetch_tags, remote, network=True)
