"""Hook suppression and safe-directory membership policies."""

import logging
from typing import List

from ..platform import current_user
from .gateway import CommandGateway, ExecutionScope
from .inspector import StateInspector
from .models import DesiredState

DISCARD_HOOKS_PATH = "/dev/null"

# `git config --unset` exits 5 when the key is not set
UNSET_MISSING_KEY = 5

ERE_SPECIAL = set(".[]()*+?{}|^$\\")


class HooksPolicy:
    """Whether hook execution is disabled through ``core.hooksPath``."""

    def __init__(self, gateway: CommandGateway, inspector: StateInspector):
        self.gateway = gateway
        self.inspector = inspector
        self.logger = logging.getLogger('gitensure.reconcile.policies')

    def _config_args(self) -> List[str]:
        # older git has no --local; plain `git config` falls back to its default scope
        if self.gateway.capabilities.supports_local_config_scope:
            return ["config", "--local"]
        return ["config"]

    def get(self) -> bool:
        return self.inspector.hooks_path_of() == DISCARD_HOOKS_PATH

    def set(self, skip: bool) -> None:
        scope = self.inspector.scope
        if skip:
            self.logger.info(f"Disabling hooks for {self.inspector.path}")
            self.gateway.run(scope, *self._config_args(), "core.hooksPath", DISCARD_HOOKS_PATH)
        else:
            self.logger.info(f"Enabling hooks for {self.inspector.path}")
            self.gateway.query(scope, *self._config_args(), "--unset", "core.hooksPath", absent=(UNSET_MISSING_KEY,))


class SafeDirectoryPolicy:
    """
    Membership of the managed path in git's global ``safe.directory`` list.

    The list is process-wide state shared with every other git user of the
    executing identity; callers running reconciliations in parallel must
    serialize access themselves.
    """

    def __init__(self, gateway: CommandGateway, inspector: StateInspector, desired: DesiredState):
        self.gateway = gateway
        self.inspector = inspector
        self.desired = desired
        self.logger = logging.getLogger('gitensure.reconcile.policies')

    @property
    def managed_path(self) -> str:
        return str(self.desired.path)

    @property
    def scope(self) -> ExecutionScope:
        return ExecutionScope.neutral(self.desired.path)

    def get(self) -> bool:
        return self.managed_path in self.inspector.safe_directories()

    def should_be_listed(self) -> bool:
        executing = self.desired.user or current_user()
        return self.desired.owner != executing and self.desired.safe_directory

    def update(self) -> None:
        """Add or remove the path according to owner and policy; no-op without an owner."""
        if not self.desired.owner:
            return
        if self.should_be_listed():
            self.add()
        else:
            self.remove()

    def add(self) -> None:
        if self.get():
            return
        self.logger.info(f"Adding '{self.managed_path}' to safe directory list")
        self.gateway.run(self.scope, "config", "--global", "--add", "safe.directory", self.managed_path)

    def remove(self) -> None:
        if not self.get():
            return
        self.logger.info(f"Removing '{self.managed_path}' from safe directory list")
        if self.gateway.capabilities.supports_fixed_value:
            value = ["--fixed-value", "--unset-all", "safe.directory", self.managed_path]
        else:
            value = ["--unset-all", "safe.directory", "^" + _ere_escape(self.managed_path) + "$"]
        self.gateway.query(self.scope, "config", "--global", *value, absent=(UNSET_MISSING_KEY,))


def _ere_escape(text: str) -> str:
    """Escape POSIX extended regular expression metacharacters."""
    return "".join("\\" + char if char in ERE_SPECIAL else char for char in text)
