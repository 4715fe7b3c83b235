#!/usr/bin/env python3
"""
Tests for configuration loading and validation.
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from gitensure.config import Config, load_configuration, validate_configuration


class TestConfig(unittest.TestCase):

    def test_defaults(self):
        config = Config()
        self.assertEqual(config.log_level, "INFO")
        self.assertIsNone(config.base_dir)
        self.assertTrue(config.enable_performance_logging)
        self.assertTrue(config.git_executable)

    def test_log_level_is_normalised(self):
        self.assertEqual(Config(log_level="debug").log_level, "DEBUG")

    def test_invalid_log_level(self):
        with self.assertRaises(ValueError):
            Config(log_level="LOUD")

    def test_empty_git_executable(self):
        with self.assertRaises(ValueError):
            Config(git_executable="")

    def test_allows_path_without_base_dir(self):
        self.assertTrue(Config().allows_path(Path("/anywhere/repo")))

    def test_allows_path_below_base_dir(self):
        config = Config(base_dir="/srv/repos")
        self.assertTrue(config.allows_path(Path("/srv/repos/app")))
        self.assertTrue(config.allows_path(Path("/srv/repos")))
        self.assertFalse(config.allows_path(Path("/srv/repos-other/app")))
        self.assertFalse(config.allows_path(Path("/srv/repos/../elsewhere")))


class TestLoadConfiguration(unittest.TestCase):

    @patch.dict(os.environ, {
        "GITENSURE_BASE_DIR": "/srv/repos",
        "GITENSURE_LOG_LEVEL": "warning",
        "GITENSURE_PERFORMANCE_LOGGING": "false",
        "GITENSURE_GIT_EXECUTABLE": "/usr/local/bin/git",
    })
    def test_environment_overrides(self):
        config = load_configuration()
        self.assertEqual(config.base_dir, Path("/srv/repos"))
        self.assertEqual(config.log_level, "WARNING")
        self.assertFalse(config.enable_performance_logging)
        self.assertEqual(config.git_executable, "/usr/local/bin/git")

    @patch.dict(os.environ, {"GITENSURE_LOG_LEVEL": "LOUD"})
    def test_invalid_environment(self):
        with self.assertRaises(ValueError) as ctx:
            load_configuration()
        self.assertIn("Configuration error", str(ctx.exception))


class TestValidateConfiguration(unittest.TestCase):

    @patch("shutil.which", return_value=None)
    def test_missing_git_is_an_error(self, mock_which):
        issues = validate_configuration(Config(git_executable="no-such-git"))
        self.assertTrue(any(issue.startswith("ERROR:") for issue in issues))

    @patch("shutil.which", return_value="/usr/bin/git")
    def test_unset_base_dir_is_a_warning(self, mock_which):
        issues = validate_configuration(Config())
        self.assertEqual(len(issues), 1)
        self.assertTrue(issues[0].startswith("WARNING:"))

    @patch("shutil.which", return_value="/usr/bin/git")
    def test_existing_base_dir_is_clean(self, mock_which):
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertEqual(validate_configuration(Config(base_dir=temp_dir)), [])


if __name__ == "__main__":
    unittest.main()
