"""Read-only inspection of a repository on disk."""

import logging
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from .gateway import CommandGateway, ExecutionScope
from .models import ActualState, DesiredState, Layout

# `git status` and friends exit 128 outside of a repository
NOT_A_REPOSITORY = 128


class StateInspector:
    """
    Queries the state of the repository at ``path``.

    Every query is read-only. A query that fails because git reports that
    the thing asked for does not exist answers with an empty or None value;
    any other git failure propagates as CommandError.
    """

    def __init__(self, gateway: CommandGateway, path: Path):
        self.gateway = gateway
        self.path = Path(path)
        self.logger = logging.getLogger('gitensure.reconcile.inspector')

    @property
    def scope(self) -> ExecutionScope:
        return ExecutionScope.for_repository(self.path)

    def _lines(self, output: Optional[str]) -> List[str]:
        if not output:
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def config_scope_args(self) -> List[str]:
        if self.gateway.capabilities.supports_local_config_scope:
            return ["--local"]
        return []

    # Layout

    def has_working_tree_metadata(self) -> bool:
        return (self.path / ".git").exists()

    def bare_config_exists(self) -> bool:
        """Whether ``path/config`` is a readable git configuration file."""
        if not (self.path / "config").is_file():
            return False
        result = self.gateway.query(
            self.scope, "config", "--list", "--file", "config", absent=(1, NOT_A_REPOSITORY)
        )
        return result is not None

    def bare_exists(self) -> bool:
        return self.bare_config_exists() and not self.has_working_tree_metadata()

    def working_copy_exists(self, desired: DesiredState) -> bool:
        """
        Whether ``path`` is a working copy of the desired repository.

        With a source configured, the configured remote must point at the
        URL the repository would be cloned from; a different URL means a
        different repository, which reports as not existing.
        """
        if not self.has_working_tree_metadata():
            return False
        url = desired.default_url()
        if url is not None:
            actual = self.gateway.query(
                self.scope, "config", "--get", f"remote.{desired.remote}.url", absent=(1, NOT_A_REPOSITORY)
            )
            return actual is not None and actual.strip() == url
        return self.gateway.query(self.scope, "status", absent=(NOT_A_REPOSITORY,)) is not None

    def layout_of(self) -> Layout:
        if self.has_working_tree_metadata():
            return Layout.WORKING_COPY
        if self.bare_config_exists():
            return Layout.BARE
        return Layout.MISSING

    def git_dir(self) -> Path:
        """Directory holding the repository metadata."""
        if self.has_working_tree_metadata():
            return self.path / ".git"
        return self.path

    # Remotes

    def remotes_of(self) -> Dict[str, str]:
        remotes: Dict[str, str] = {}
        for name in self._lines(self.gateway.run(self.scope, "remote")):
            url = self.gateway.query(self.scope, "config", "--get", f"remote.{name}.url")
            if url is not None:
                remotes[name] = url.strip()
        return remotes

    def mirror_remotes(self) -> FrozenSet[str]:
        output = self.gateway.query(self.scope, "config", "--get-regexp", r"^remote\..*\.mirror$")
        mirrors = set()
        for line in self._lines(output):
            key, _, value = line.partition(" ")
            if value.strip().lower() in ("true", "yes", "on", "1"):
                mirrors.add(key[len("remote."):-len(".mirror")])
        return frozenset(mirrors)

    def is_mirror(self, remote: Optional[str] = None) -> bool:
        """Whether ``remote`` (or, when omitted, any remote) is a mirror."""
        mirrors = self.mirror_remotes()
        if remote is None:
            return bool(mirrors)
        return remote in mirrors

    # Refs

    def branches_of(self) -> Tuple[FrozenSet[str], FrozenSet[str]]:
        """Local branch names and remote-tracking names (``<remote>/<branch>``)."""
        output = self.gateway.run(
            self.scope, "for-each-ref", "--format=%(refname)", "refs/heads", "refs/remotes"
        )
        local, remote = set(), set()
        for ref in self._lines(output):
            if ref.startswith("refs/heads/"):
                local.add(ref[len("refs/heads/"):])
            elif ref.startswith("refs/remotes/") and not ref.endswith("/HEAD"):
                remote.add(ref[len("refs/remotes/"):])
        return frozenset(local), frozenset(remote)

    def local_branches(self) -> FrozenSet[str]:
        return self.branches_of()[0]

    def remote_branches(self) -> FrozenSet[str]:
        return self.branches_of()[1]

    def tags_of(self) -> FrozenSet[str]:
        return frozenset(self._lines(self.gateway.run(self.scope, "tag", "-l")))

    def current_commit(self, ref: str = "HEAD") -> str:
        """Commit id ``ref`` points at; raises CommandError when it does not resolve."""
        return self.gateway.run(self.scope, "rev-parse", ref).strip()

    def commit_of(self, ref: str) -> Optional[str]:
        """Commit id of ``ref``, or None when it does not resolve."""
        output = self.gateway.query(
            self.scope, "rev-parse", "--verify", "-q", f"{ref}^{{commit}}", absent=(1, NOT_A_REPOSITORY)
        )
        return output.strip() if output else None

    def _symbolic_head(self) -> Optional[str]:
        output = self.gateway.query(self.scope, "symbolic-ref", "-q", "--short", "HEAD")
        return output.strip() if output else None

    def current_branch(self) -> Optional[str]:
        """Branch HEAD is on; None when detached or on an unborn branch."""
        branch = self._symbolic_head()
        if branch is None or self.commit_of("HEAD") is None:
            return None
        return branch

    def unborn_branch(self) -> Optional[str]:
        """Name of the active branch when it has no commits yet."""
        branch = self._symbolic_head()
        if branch is not None and self.commit_of("HEAD") is None:
            return branch
        return None

    def has_commits(self) -> bool:
        output = self.gateway.query(self.scope, "rev-list", "--all", "--count", absent=(NOT_A_REPOSITORY,))
        try:
            return int((output or "0").strip()) > 0
        except ValueError:
            return False

    # Configuration

    def hooks_path_of(self) -> Optional[str]:
        output = self.gateway.query(self.scope, "config", *self.config_scope_args(), "--get", "core.hooksPath")
        return output.strip() if output else None

    def safe_directories(self) -> FrozenSet[str]:
        output = self.gateway.query(
            ExecutionScope.neutral(self.path), "config", "--global", "--get-all", "safe.directory"
        )
        return frozenset(self._lines(output))

    def snapshot(self) -> ActualState:
        """Fresh ActualState for ``path``."""
        layout = self.layout_of()
        safe_directories = self.safe_directories()
        if layout == Layout.MISSING:
            return ActualState(path=self.path, layout=layout, safe_directories=safe_directories)

        local, remote = self.branches_of()
        state = ActualState(
            path=self.path,
            layout=layout,
            remotes=self.remotes_of(),
            current_branch=self.current_branch(),
            current_commit=self.commit_of("HEAD"),
            local_branches=local,
            remote_branches=remote,
            tags=self.tags_of(),
            mirror_remotes=self.mirror_remotes(),
            hooks_path=self.hooks_path_of(),
            safe_directories=safe_directories,
        )
        self.logger.debug(f"Repository state for {self.path}: {state}")
        return state
