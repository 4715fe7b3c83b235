"""Transitions between missing, working copy and bare repository layouts."""

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import ConfigConflict
from .gateway import CommandGateway, ExecutionScope
from .inspector import StateInspector
from .models import DesiredState, Ensure, NamedSources, SingleSource
from .policies import UNSET_MISSING_KEY


class LayoutConverter:
    """
    Creates repositories and moves them between layouts.

    Conversions move directories first and write configuration afterwards.
    They are not transactional: a failure in between leaves the repository
    half converted.
    """

    def __init__(
        self,
        gateway: CommandGateway,
        inspector: StateInspector,
        desired: DesiredState,
        after_change: Optional[Callable[[], None]] = None
    ):
        self.gateway = gateway
        self.inspector = inspector
        self.desired = desired
        self.after_change = after_change
        self.logger = logging.getLogger('gitensure.reconcile.layout')

    @property
    def path(self) -> Path:
        return self.desired.path

    @property
    def scope(self) -> ExecutionScope:
        return self.inspector.scope

    def tempdir(self) -> Path:
        """Staging directory beside the repository, stable per path."""
        digest = hashlib.md5(str(self.path).encode("utf-8")).hexdigest()
        return self.path.parent / f".gitensure-{digest}"

    # Missing -> repository

    def initialize(self) -> None:
        """Create an empty repository, bare when the desired layout is bare."""
        self.path.mkdir(parents=True, exist_ok=True)
        if self.desired.user:
            shutil.chown(self.path, user=self.desired.user)
        args = ["init"]
        if self.desired.ensure == Ensure.BARE:
            args.append("--bare")
        self.logger.info(f"Initializing {'bare ' if len(args) > 1 else ''}repository at {self.path}")
        self.gateway.run(self.scope, *args)

    def clone_arguments(self, url: str) -> List[str]:
        desired = self.desired
        args = ["clone"]
        if desired.depth:
            args += ["--depth", str(desired.depth)]
            if desired.revision and not desired.branch:
                args += ["--branch", desired.revision]
        if desired.branch:
            args += ["--branch", desired.branch]

        if desired.ensure == Ensure.BARE:
            args.append("--bare")
        elif desired.ensure == Ensure.MIRROR:
            args.append("--mirror")

        if desired.remote != "origin":
            args += ["--origin", desired.remote]
        args += [url, str(self.path)]
        return args

    def clone(self, url: str) -> None:
        if self.inspector.working_copy_exists(self.desired):
            self.logger.info("Repo has already been cloned")
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Cloning {url} into {self.path}")
        self.gateway.run(ExecutionScope.neutral(self.path), *self.clone_arguments(url), network=True)

    # Working copy <-> bare

    def working_copy_to_bare(self) -> None:
        """
        Make ``path/.git`` the repository root and discard the working tree.

        A mirror additionally gets its remotes flagged; a mirror without a
        source is rejected after the move.
        """
        if not self.inspector.working_copy_exists(self.desired) or self.inspector.bare_exists():
            return
        self.logger.info("Converting working copy repository to bare repository")
        staging = self.tempdir()
        shutil.move(str(self.path / ".git"), str(staging))
        shutil.rmtree(self.path)
        shutil.move(str(staging), str(self.path))

        self.gateway.run(self.scope, "config", *self.inspector.config_scope_args(), "--bool", "core.bare", "true")
        if self.desired.ensure != Ensure.MIRROR:
            return
        if self.desired.source is None:
            raise ConfigConflict("Cannot have empty repository that is also a mirror.")
        self.set_mirror()

    def bare_to_working_copy(self) -> None:
        """
        Move the bare repository under ``path/.git`` and check out HEAD.

        An empty bare repository becomes an empty working copy.
        """
        self.logger.info("Converting bare repository to working copy repository")
        staging = self.tempdir()
        shutil.move(str(self.path), str(staging))
        self.path.mkdir()
        shutil.move(str(staging), str(self.path / ".git"))

        self.gateway.run(self.scope, "config", *self.inspector.config_scope_args(), "--bool", "core.bare", "false")
        if self.inspector.has_commits():
            self.gateway.run(self.scope, "reset", "--hard", "HEAD")
            self.gateway.run(self.scope, "checkout", "--force")
            if self.after_change is not None:
                self.after_change()
        if self.inspector.is_mirror():
            self.set_no_mirror()

    # Mirror flags

    def _mirror_remotes(self) -> List[str]:
        if isinstance(self.desired.source, NamedSources):
            return list(self.desired.source.names())
        if isinstance(self.desired.source, SingleSource):
            return [self.desired.remote]
        return sorted(self.inspector.mirror_remotes())

    def set_mirror(self) -> None:
        for remote in self._mirror_remotes():
            self.gateway.run(self.scope, "config", f"remote.{remote}.mirror", "true")

    def set_no_mirror(self) -> None:
        for remote in self._mirror_remotes():
            self.gateway.query(self.scope, "config", "--unset", f"remote.{remote}.mirror", absent=(UNSET_MISSING_KEY,))
