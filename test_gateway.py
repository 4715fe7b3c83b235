#!/usr/bin/env python3
"""
Unit tests for the git command gateway.

GitPython's Git class is mocked; these tests check the command lines,
environments and exit status handling, not git itself.
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from git.exc import GitCommandNotFound

from gitensure.errors import CommandError, UnsupportedFeature
from gitensure.reconcile.gateway import (
    CommandGateway,
    ExecutionScope,
    GitCapabilities,
    InvocationOptions,
)
from gitensure.reconcile.models import PerRemoteProxy, SingleProxy


SCOPE = ExecutionScope.neutral()


class TestGitCapabilities(unittest.TestCase):

    def test_parse_plain_version(self):
        caps = GitCapabilities.parse("git version 2.39.2\n")
        self.assertEqual(caps.version, (2, 39, 2))
        self.assertTrue(caps.supports_forced_tag_fetch)
        self.assertTrue(caps.supports_fixed_value)

    def test_parse_vendor_version(self):
        caps = GitCapabilities.parse("git version 2.37.1 (Apple Git-137.1)")
        self.assertEqual(caps.version, (2, 37, 1))

    def test_parse_windows_version(self):
        caps = GitCapabilities.parse("git version 2.42.0.windows.2")
        self.assertEqual(caps.version[:3], (2, 42, 0))

    def test_old_git_lacks_features(self):
        caps = GitCapabilities((1, 7, 1))
        self.assertFalse(caps.supports_config_parameter)
        self.assertFalse(caps.supports_local_config_scope)
        self.assertFalse(caps.supports_forced_tag_fetch)
        with self.assertRaises(UnsupportedFeature) as ctx:
            caps.require_config_parameter()
        self.assertEqual(ctx.exception.required_version, "1.7.2")

    def test_unparseable_output(self):
        with self.assertRaises(ValueError):
            GitCapabilities.parse("not git")


class TestInvocationOptions(unittest.TestCase):

    def test_no_identity_means_no_ssh_command(self):
        self.assertIsNone(InvocationOptions().ssh_command())

    def test_ssh_command_forces_identity(self):
        command = InvocationOptions(identity=Path("/keys/deploy")).ssh_command()
        self.assertTrue(command.startswith("ssh -i /keys/deploy "))
        self.assertIn('-o "IdentitiesOnly yes"', command)
        self.assertIn('-o "PasswordAuthentication no"', command)
        # IgnoreUnknown has to precede the option it covers
        self.assertLess(command.index("IgnoreUnknown"), command.index('"IdentityAgent none"'))

    def test_single_proxy(self):
        options = InvocationOptions(http_proxy=SingleProxy("http://proxy:3128"))
        self.assertEqual(options.proxy_parameters(), ["-c", "http.proxy=http://proxy:3128"])

    def test_per_remote_proxy(self):
        options = InvocationOptions(http_proxy=PerRemoteProxy({
            "upstream": "http://b:3128",
            "origin": "http://a:3128",
        }))
        self.assertEqual(options.proxy_parameters(), [
            "-c", "remote.origin.proxy=http://a:3128",
            "-c", "remote.upstream.proxy=http://b:3128",
        ])

    @patch("gitensure.reconcile.gateway.current_user", return_value="deploy")
    def test_same_user_is_not_other_user(self, mock_user):
        self.assertFalse(InvocationOptions(user="deploy").runs_as_other_user)
        self.assertTrue(InvocationOptions(user="www-data").runs_as_other_user)
        self.assertFalse(InvocationOptions().runs_as_other_user)


class TestCommandGateway(unittest.TestCase):

    def setUp(self):
        patcher = patch("gitensure.reconcile.gateway.Git")
        self.mock_git_class = patcher.start()
        self.addCleanup(patcher.stop)
        self.mock_execute = self.mock_git_class.return_value.execute
        self.mock_execute.return_value = (0, "output", "")

    def _gateway(self, **options):
        gateway = CommandGateway(InvocationOptions(**options), git_executable="git")
        gateway._capabilities = GitCapabilities((2, 40, 0))
        return gateway

    def _executed_command(self):
        return self.mock_execute.call_args[0][0]

    def test_run_returns_stdout(self):
        gateway = self._gateway()
        self.assertEqual(gateway.run(SCOPE, "status"), "output")
        self.assertEqual(self._executed_command(), ["git", "status"])
        self.mock_git_class.assert_called_with(str(SCOPE.cwd))

    def test_run_failure_raises_command_error(self):
        self.mock_execute.return_value = (128, "", "fatal: not a git repository")
        gateway = self._gateway()
        with self.assertRaises(CommandError) as ctx:
            gateway.run(SCOPE, "status")
        self.assertEqual(ctx.exception.status, 128)
        self.assertEqual(ctx.exception.command, ["git", "status"])
        self.assertIn("not a git repository", ctx.exception.output)

    def test_query_absent_status_returns_none(self):
        self.mock_execute.return_value = (1, "", "")
        gateway = self._gateway()
        self.assertIsNone(gateway.query(SCOPE, "config", "--get", "remote.origin.url"))

    def test_query_unexpected_status_raises(self):
        self.mock_execute.return_value = (128, "", "fatal: bad config")
        gateway = self._gateway()
        with self.assertRaises(CommandError):
            gateway.query(SCOPE, "config", "--get", "remote.origin.url")

    def test_query_custom_absent_statuses(self):
        self.mock_execute.return_value = (128, "", "fatal")
        gateway = self._gateway()
        self.assertIsNone(gateway.query(SCOPE, "rev-parse", "HEAD", absent=(128,)))

    def test_trust_server_cert_adds_parameter(self):
        gateway = self._gateway(trust_server_cert=True)
        gateway.run(SCOPE, "fetch", "origin", network=True)
        self.assertEqual(self._executed_command(), ["git", "-c", "http.sslVerify=false", "fetch", "origin"])

    def test_trust_server_cert_on_old_git_is_unsupported(self):
        gateway = self._gateway(trust_server_cert=True)
        gateway._capabilities = GitCapabilities((1, 6, 0))
        with self.assertRaises(UnsupportedFeature):
            gateway.run(SCOPE, "status")
        self.mock_execute.assert_not_called()

    def test_proxy_only_applies_to_network_commands(self):
        gateway = self._gateway(http_proxy=SingleProxy("http://proxy:3128"))
        gateway.run(SCOPE, "status")
        self.assertEqual(self._executed_command(), ["git", "status"])
        gateway.run(SCOPE, "fetch", "origin", network=True)
        self.assertEqual(
            self._executed_command(),
            ["git", "-c", "http.proxy=http://proxy:3128", "fetch", "origin"]
        )

    def test_identity_is_passed_per_invocation(self):
        before = dict(os.environ)
        gateway = self._gateway(identity=Path("/keys/deploy"))
        gateway.run(SCOPE, "fetch", "origin", network=True)
        env = self.mock_execute.call_args[1]["env"]
        self.assertTrue(env["GIT_SSH_COMMAND"].startswith("ssh -i /keys/deploy"))
        self.assertEqual(dict(os.environ), before)

    def test_no_identity_leaves_environment_alone(self):
        gateway = self._gateway()
        gateway.run(SCOPE, "status")
        self.assertEqual(self.mock_execute.call_args[1]["env"], {})

    def test_umask_is_passed_to_process(self):
        gateway = self._gateway(umask=0o22)
        gateway.run(SCOPE, "status")
        self.assertEqual(self.mock_execute.call_args[1]["umask"], 0o22)
        self.assertNotIn("user", self.mock_execute.call_args[1])

    @patch("gitensure.reconcile.gateway.home_directory_for", return_value=Path("/home/www-data"))
    @patch("gitensure.reconcile.gateway.current_user", return_value="root")
    def test_other_user_gets_own_home(self, mock_user, mock_home):
        gateway = self._gateway(user="www-data")
        gateway.run(SCOPE, "status")
        kwargs = self.mock_execute.call_args[1]
        self.assertEqual(kwargs["user"], "www-data")
        self.assertEqual(kwargs["env"]["HOME"], str(Path("/home/www-data")))

    def test_missing_executable_raises_command_error(self):
        self.mock_execute.side_effect = GitCommandNotFound("git", "not found")
        gateway = self._gateway()
        with self.assertRaises(CommandError) as ctx:
            gateway.run(SCOPE, "status")
        self.assertIsNone(ctx.exception.status)

    def test_missing_scope_directory_is_not_run(self):
        gateway = self._gateway()
        with tempfile.TemporaryDirectory() as temp_dir:
            missing = ExecutionScope.for_repository(Path(temp_dir) / "missing")
            with self.assertRaises(CommandError) as ctx:
                gateway.run(missing, "rev-parse", "HEAD")
        self.assertIsNone(ctx.exception.status)
        self.assertIn("does not exist", ctx.exception.output)
        self.mock_execute.assert_not_called()
        self.mock_git_class.assert_not_called()

    def test_capabilities_are_detected_once(self):
        self.mock_execute.return_value = (0, "git version 2.30.1", "")
        gateway = CommandGateway(git_executable="git")
        self.assertEqual(gateway.capabilities.version, (2, 30, 1))
        self.assertEqual(gateway.capabilities.version, (2, 30, 1))
        self.assertEqual(self.mock_execute.call_count, 1)
        self.assertEqual(self._executed_command(), ["git", "--version"])


class TestExecutionScope(unittest.TestCase):

    def test_neutral_scope_is_filesystem_root(self):
        scope = ExecutionScope.neutral()
        self.assertEqual(scope.cwd, Path(scope.cwd.anchor))


if __name__ == "__main__":
    unittest.main()
