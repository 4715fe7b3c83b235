"""Convergence of a repository on disk towards its desired state."""

import logging
import shutil
from typing import Optional

from ..config import Config
from ..errors import ConfigConflict, PathConflict
from .gateway import CommandGateway, ExecutionScope, InvocationOptions
from .inspector import StateInspector
from .layout import LayoutConverter
from .models import DesiredState, Ensure, Layout, SourceSpec
from .ownership import apply_ownership, write_excludes
from .policies import HooksPolicy, SafeDirectoryPolicy
from .remotes import RemoteReconciler, source_from_remotes
from .resolver import RevisionResolver


class ConvergenceExecutor:
    """
    Create, destroy and update one git repository.

    The public operations mirror the properties an orchestrator compares:
    existence, revision, source and hook suppression. State is read fresh
    from disk by every operation.
    """

    def __init__(
        self,
        desired: DesiredState,
        config: Optional[Config] = None,
        gateway: Optional[CommandGateway] = None
    ):
        self.desired = desired
        self.config = config or Config()
        self.logger = logging.getLogger('gitensure.reconcile.executor')

        self.gateway = gateway or CommandGateway(
            InvocationOptions.from_desired(desired), git_executable=self.config.git_executable
        )
        self.inspector = StateInspector(self.gateway, desired.path)
        self.remotes = RemoteReconciler(self.gateway, self.inspector.scope)
        self.resolver = RevisionResolver(self.inspector, refresh_references=self.update_references)
        self.layout = LayoutConverter(
            self.gateway, self.inspector, desired, after_change=self.update_owner_and_excludes
        )
        self.hooks = HooksPolicy(self.gateway, self.inspector)
        self.safe_directory = SafeDirectoryPolicy(self.gateway, self.inspector, desired)

    @property
    def path(self):
        return self.desired.path

    @property
    def scope(self) -> ExecutionScope:
        return self.inspector.scope

    # Existence

    def working_copy_exists(self) -> bool:
        return self.inspector.working_copy_exists(self.desired)

    def bare_exists(self) -> bool:
        return self.inspector.bare_exists()

    def exists(self) -> bool:
        self.safe_directory.update()
        return self.working_copy_exists() or self.bare_exists()

    def _convertible(self) -> bool:
        if self.desired.ensure == Ensure.BARE:
            return self.working_copy_exists()
        if self.desired.ensure in (Ensure.PRESENT, Ensure.LATEST):
            return self.bare_exists()
        return False

    def check_force(self) -> None:
        """Clear a non-empty path that is not the desired repository, if forced."""
        if not self.path.exists() or not any(self.path.iterdir()):
            return
        if self._convertible() and self.desired.source is None:
            return
        if not self.desired.force:
            raise PathConflict(f"Path {self.path} exists and is not the desired repository.")
        self.logger.info("Deleting current repository before recloning")
        self.destroy()
        self.logger.info("Create repository from latest")

    def create(self) -> None:
        # conflicts are reported before anything on disk is touched
        if self.desired.revision and self.desired.is_bare_or_mirror:
            raise ConfigConflict(
                f"Cannot set a revision ({self.desired.revision}) on a bare repository"
            )
        if self.desired.source is None and self.desired.ensure == Ensure.MIRROR:
            raise ConfigConflict("Cannot init repository with mirror option, try bare instead")
        url = self.desired.default_url()

        self.check_force()
        if self.desired.source is None:
            self.init_repository()
            if self.desired.skip_hooks is not None:
                self.set_hooks_skip(self.desired.skip_hooks)
        else:
            self.layout.clone(url)
            self.update_remotes(self.desired.source)
            if self.desired.ensure == Ensure.MIRROR:
                self.layout.set_mirror()
            if self.desired.skip_hooks is not None:
                self.set_hooks_skip(self.desired.skip_hooks)
            if self.desired.revision:
                self.checkout()
            if not self.desired.is_bare_or_mirror and self.desired.submodules:
                self.update_submodules()
        self.update_owner_and_excludes()

    def init_repository(self) -> None:
        ensure = self.desired.ensure
        if ensure == Ensure.BARE and self.working_copy_exists():
            self.convert_working_copy_to_bare()
        elif ensure in (Ensure.PRESENT, Ensure.LATEST) and self.bare_exists():
            self.convert_bare_to_working_copy()
        else:
            self.layout.initialize()

    def destroy(self) -> None:
        self.safe_directory.remove()
        self.logger.info(f"Removing {self.path}")
        shutil.rmtree(self.path, ignore_errors=True)

    # Layout

    def convert_working_copy_to_bare(self) -> None:
        self.layout.working_copy_to_bare()

    def convert_bare_to_working_copy(self) -> None:
        self.layout.bare_to_working_copy()

    def is_mirror(self) -> bool:
        return self.inspector.is_mirror()

    def set_mirror(self) -> None:
        self.layout.set_mirror()

    def set_no_mirror(self) -> None:
        self.layout.set_no_mirror()

    # Revision

    def get_revision(self) -> str:
        return self.resolver.resolve(self.desired, "HEAD")

    def set_revision(self, desired_revision: str) -> None:
        self.checkout(desired_revision)
        if desired_revision in self.inspector.local_branches():
            # reset rather than merge: the remote is authoritative
            if self.desired.source is not None:
                target = f"{self.desired.remote}/{desired_revision}"
            else:
                target = desired_revision
            self.gateway.run(self.scope, "reset", "--hard", target)
        if not self.desired.is_bare_or_mirror and self.desired.submodules:
            self.update_submodules()
        self.update_owner_and_excludes()

    def checkout(self, revision: Optional[str] = None) -> None:
        """
        Check out ``revision`` from locally cached refs.

        A branch known only on the remote gets a local tracking branch. With
        keep_local_changes, modifications are stashed first and restored
        afterwards; a failed checkout leaves them stashed.
        """
        revision = revision or self.desired.revision
        stashed = False
        if self.desired.keep_local_changes:
            stashed = self.stash()

        local, remote = self.inspector.branches_of()
        tracking = f"{self.desired.remote}/{revision}"
        if revision not in local and tracking in remote:
            self.gateway.run(self.scope, "checkout", "--force", "-b", revision, "--track", tracking)
        else:
            self.gateway.run(self.scope, "checkout", "--force", revision)

        if stashed:
            self.unstash()

    def stash(self) -> bool:
        """Stash local modifications; returns whether anything was stashed."""
        before = self._stash_count()
        self.gateway.run(self.scope, "stash", "push")
        return self._stash_count() > before

    def unstash(self) -> None:
        self.gateway.run(self.scope, "stash", "pop")

    def _stash_count(self) -> int:
        output = self.gateway.run(self.scope, "stash", "list")
        return len([line for line in output.splitlines() if line.strip()])

    def latest(self) -> Optional[str]:
        """Revision the repository should move to when it is not latest."""
        if not self.desired.revision:
            branch = self.inspector.current_branch()
            if branch:
                return branch
        return self.desired.revision

    def latest_revision(self) -> str:
        """
        Newest revision of the current branch on the remote, or of HEAD.

        May (re)create the repository first: always when no working copy
        exists, and also when ``force`` is set.
        """
        if self.desired.force and self.working_copy_exists():
            self.create()
        if not self.working_copy_exists():
            self.create()

        branch = self.inspector.current_branch()
        if branch:
            return self.resolver.resolve(self.desired, f"{self.desired.remote}/{branch}")
        return self.resolver.resolve(self.desired, "HEAD")

    def is_latest(self) -> bool:
        return self.get_revision() == self.latest_revision()

    def update_references(self) -> None:
        self.remotes.update_references(self.desired.remote)
        self.update_owner_and_excludes()

    # Source

    def get_source(self) -> SourceSpec:
        return source_from_remotes(self.inspector.remotes_of())

    def set_source(self, desired_source: SourceSpec) -> None:
        plan = self.remotes.plan(desired_source, self.desired.remote, self.inspector.remotes_of())
        if plan.recreate:
            self.logger.info(f"Source of {self.path} changed; recreating repository")
            self.destroy()
            self.create()
            return
        self.remotes.apply(plan)

    def update_remotes(self, desired_source: SourceSpec) -> bool:
        plan = self.remotes.plan(desired_source, self.desired.remote, self.inspector.remotes_of())
        # the clone itself just set up the remote, so no recreate applies here
        plan.recreate = False
        return self.remotes.apply(plan)

    # Hooks

    def get_hooks_skip(self) -> bool:
        return self.hooks.get()

    def set_hooks_skip(self, skip: bool) -> None:
        self.hooks.set(skip)

    # Side effects

    def update_submodules(self) -> None:
        self.gateway.run(self.scope, "submodule", "update", "--init", "--recursive", network=True)

    def update_owner_and_excludes(self) -> None:
        if self.desired.owner or self.desired.group:
            apply_ownership(self.path, self.desired.owner, self.desired.group)
        if self.desired.excludes is not None and self.inspector.layout_of() != Layout.MISSING:
            write_excludes(self.inspector.git_dir(), self.desired.excludes)
