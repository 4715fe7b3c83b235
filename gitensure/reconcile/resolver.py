"""Resolution of symbolic revisions against the state of a repository."""

import logging
from typing import Callable, Optional

from ..errors import RefNotFound
from .inspector import StateInspector
from .models import (
    DesiredState,
    LocalBranchTarget,
    RawCommitTarget,
    RemoteBranchTarget,
    RevisionTarget,
    TagTarget,
)


class RevisionResolver:
    """
    Reports the revision a repository is at, in the terms of the desired state.

    When HEAD (or the requested ref) is at the commit the desired revision
    names, the symbolic desired revision is reported, so a later equality
    check against the desired value reads as in sync. Otherwise the raw
    commit id is reported and the mismatch is visible.
    """

    def __init__(self, inspector: StateInspector, refresh_references: Optional[Callable[[], None]] = None):
        self.inspector = inspector
        self.refresh_references = refresh_references
        self.logger = logging.getLogger('gitensure.reconcile.resolver')

    def classify(self, revision: str, remote: str) -> RevisionTarget:
        """Resolve ``revision`` to a tag, local branch, remote branch or raw commit."""
        inspector = self.inspector
        local, remote_branches = inspector.branches_of()

        if revision in inspector.tags_of():
            # the tag object's own id is not wanted, only the commit it names
            commit = inspector.commit_of(revision)
            target = TagTarget(revision, commit or "")
        elif revision in local:
            target = LocalBranchTarget(revision, inspector.commit_of(revision) or "")
        elif f"{remote}/{revision}" in remote_branches:
            target = RemoteBranchTarget(revision, inspector.commit_of(f"{remote}/{revision}") or "")
        else:
            output = inspector.gateway.query(
                inspector.scope, "rev-parse", "--revs-only", revision, absent=(128,)
            )
            target = RawCommitTarget((output or "").strip())

        if not target.commit:
            raise RefNotFound(revision)
        self.logger.debug(f"Resolved revision '{revision}' to {target}")
        return target

    def resolve(self, desired: DesiredState, ref: str = "HEAD") -> str:
        """Revision to report as the current state of the repository."""
        if desired.source is None:
            unborn = self.inspector.unborn_branch()
            if unborn is not None:
                return unborn

        current = self.inspector.current_commit(ref)
        if desired.revision == current:
            # a literal commit id that is already checked out
            return current

        if desired.source is not None and self.refresh_references is not None:
            self.refresh_references()

        if desired.revision:
            target = self.classify(desired.revision, desired.remote)
            if target.commit == current:
                return desired.revision
        return current
