"""Execution of git commands against a repository directory."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from git.cmd import Git
from git.exc import GitCommandNotFound

from ..errors import CommandError, UnsupportedFeature
from ..platform import current_user, get_git_executable, home_directory_for
from .models import DesiredState, PerRemoteProxy, ProxySpec, SingleProxy


SSH_OPTIONS = [
    ("IgnoreUnknown", "IdentityAgent"),
    ("IdentitiesOnly", "yes"),
    ("IdentityAgent", "none"),
    ("PasswordAuthentication", "no"),
    ("KbdInteractiveAuthentication", "no"),
]

CONFIG_PARAMETER_VERSION = (1, 7, 2)
LOCAL_CONFIG_SCOPE_VERSION = (1, 7, 4)
FORCED_TAG_FETCH_VERSION = (2, 20, 0)
FIXED_VALUE_VERSION = (2, 30, 0)


def _format_version(version: Tuple[int, ...]) -> str:
    return ".".join(str(part) for part in version)


@dataclass(frozen=True)
class ExecutionScope:
    """Working directory a group of git invocations runs from."""
    cwd: Path

    @classmethod
    def for_repository(cls, path: Union[str, Path]) -> "ExecutionScope":
        return cls(Path(path))

    @classmethod
    def neutral(cls, path: Optional[Union[str, Path]] = None) -> "ExecutionScope":
        """Scope outside of any repository: the filesystem root."""
        anchor = Path(path).anchor if path else ""
        return cls(Path(anchor or os.sep))


@dataclass(frozen=True)
class InvocationOptions:
    """Per-invocation settings derived from the desired state."""
    identity: Optional[Path] = None
    http_proxy: ProxySpec = None
    trust_server_cert: bool = False
    user: Optional[str] = None
    umask: Optional[int] = None

    @classmethod
    def from_desired(cls, desired: DesiredState) -> "InvocationOptions":
        return cls(
            identity=desired.identity,
            http_proxy=desired.http_proxy,
            trust_server_cert=desired.trust_server_cert,
            user=desired.user,
            umask=desired.umask,
        )

    def ssh_command(self) -> Optional[str]:
        """GIT_SSH_COMMAND forcing the configured identity file."""
        if self.identity is None:
            return None
        options = " ".join(f'-o "{name} {value}"' for name, value in SSH_OPTIONS)
        return f"ssh -i {self.identity} {options}"

    def proxy_parameters(self) -> List[str]:
        """``-c`` parameters configuring the proxy for remote actions."""
        parameters: List[str] = []
        if isinstance(self.http_proxy, SingleProxy):
            parameters += ["-c", f"http.proxy={self.http_proxy.url}"]
        elif isinstance(self.http_proxy, PerRemoteProxy):
            # Proxies for remotes that are not in use are harmless
            for remote in sorted(self.http_proxy.proxies):
                parameters += ["-c", f"remote.{remote}.proxy={self.http_proxy.proxies[remote]}"]
        return parameters

    @property
    def runs_as_other_user(self) -> bool:
        return bool(self.user) and self.user != current_user()


@dataclass(frozen=True)
class GitCapabilities:
    """Features available in the installed git, by version."""
    version: Tuple[int, ...]

    @classmethod
    def parse(cls, version_output: str) -> "GitCapabilities":
        match = re.search(r"[0-9]+\.[0-9]+\.[0-9]+(\.[0-9]+)?", version_output)
        if not match:
            raise ValueError(f"Unrecognised git version output: {version_output!r}")
        return cls(tuple(int(part) for part in match.group(0).split(".")))

    def at_least(self, required: Tuple[int, ...]) -> bool:
        return self.version >= required

    @property
    def supports_config_parameter(self) -> bool:
        return self.at_least(CONFIG_PARAMETER_VERSION)

    @property
    def supports_local_config_scope(self) -> bool:
        return self.at_least(LOCAL_CONFIG_SCOPE_VERSION)

    @property
    def supports_forced_tag_fetch(self) -> bool:
        return self.at_least(FORCED_TAG_FETCH_VERSION)

    @property
    def supports_fixed_value(self) -> bool:
        return self.at_least(FIXED_VALUE_VERSION)

    def require_config_parameter(self) -> None:
        if not self.supports_config_parameter:
            required = _format_version(CONFIG_PARAMETER_VERSION)
            raise UnsupportedFeature(
                f"Can't set sslVerify to false, the -c parameter is not supported in "
                f"Git {_format_version(self.version)}. Please install Git {required} or higher.",
                required_version=required,
            )


class CommandGateway:
    """
    Runs git for one reconciliation.

    Identity, proxy and TLS settings are applied to each invocation through
    its own arguments and environment; the process environment and working
    directory are never changed.
    """

    def __init__(self, options: Optional[InvocationOptions] = None, git_executable: Optional[str] = None):
        self.options = options or InvocationOptions()
        self.git_executable = git_executable or get_git_executable()
        self.logger = logging.getLogger('gitensure.reconcile.gateway')
        self._capabilities: Optional[GitCapabilities] = None

    @property
    def capabilities(self) -> GitCapabilities:
        """Capabilities of the installed git, computed on first use."""
        if self._capabilities is None:
            status, stdout, stderr = self._execute(ExecutionScope.neutral(), [self.git_executable, "--version"])
            if status != 0:
                raise CommandError([self.git_executable, "--version"], status, _combine(stdout, stderr))
            self._capabilities = GitCapabilities.parse(stdout)
            self.logger.debug(f"Detected git version {_format_version(self._capabilities.version)}")
        return self._capabilities

    def run(self, scope: ExecutionScope, *args: str, network: bool = False) -> str:
        """Run git and return its standard output; non-zero exit raises CommandError."""
        command = self._command(args, network)
        status, stdout, stderr = self._execute(scope, command)
        if status != 0:
            raise CommandError(command, status, _combine(stdout, stderr))
        return stdout

    def query(
        self,
        scope: ExecutionScope,
        *args: str,
        absent: Iterable[int] = (1,),
        network: bool = False
    ) -> Optional[str]:
        """
        Run a read-only git query.

        Returns None when git exits with one of the ``absent`` statuses (for
        example ``git config --get`` exits 1 for a missing key); any other
        failure raises CommandError.
        """
        command = self._command(args, network)
        status, stdout, stderr = self._execute(scope, command)
        if status == 0:
            return stdout
        if status in tuple(absent):
            self.logger.debug(f"'{' '.join(command)}' found nothing (exit {status})")
            return None
        raise CommandError(command, status, _combine(stdout, stderr))

    def _command(self, args: Tuple[str, ...], network: bool) -> List[str]:
        command = [self.git_executable]
        if self.options.trust_server_cert:
            self.capabilities.require_config_parameter()
            command += ["-c", "http.sslVerify=false"]
        if network:
            command += self.options.proxy_parameters()
        command += list(args)
        return command

    def _environment(self) -> Dict[str, str]:
        env: Dict[str, str] = {}
        ssh_command = self.options.ssh_command()
        if ssh_command:
            env["GIT_SSH_COMMAND"] = ssh_command
        if self.options.runs_as_other_user:
            env["HOME"] = str(home_directory_for(self.options.user))
        return env

    def _popen_kwargs(self) -> Dict[str, object]:
        kwargs: Dict[str, object] = {}
        if self.options.runs_as_other_user:
            kwargs["user"] = self.options.user
        if self.options.umask is not None:
            kwargs["umask"] = self.options.umask
        return kwargs

    def _execute(self, scope: ExecutionScope, command: List[str]) -> Tuple[int, str, str]:
        self.logger.debug(f"Executing '{' '.join(command)}' in {scope.cwd}")
        if not scope.cwd.is_dir():
            # GitPython would fall back to the process working directory
            raise CommandError(command, None, f"{scope.cwd} does not exist")
        try:
            status, stdout, stderr = Git(str(scope.cwd)).execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                env=self._environment(),
                **self._popen_kwargs()
            )
        except GitCommandNotFound as e:
            raise CommandError(command, None, str(e))
        return status, stdout, stderr


def _combine(stdout: str, stderr: str) -> str:
    return "\n".join(part for part in (stdout, stderr) if part)
