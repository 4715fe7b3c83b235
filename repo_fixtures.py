"""Throwaway git repositories for the gitensure test suite."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional
from unittest.mock import patch

from gitensure.platform import get_git_executable


class GitSandbox:
    """
    Temporary directory with its own HOME and global git configuration.

    Use as a context manager, or call start() in setUp and stop() in
    tearDown. Global git settings (safe.directory and friends) written by the
    code under test land in the sandbox's own config file.
    """

    def __init__(self):
        self.root: Optional[Path] = None
        self._env_patch = None

    def start(self) -> "GitSandbox":
        self.root = Path(tempfile.mkdtemp(prefix="gitensure-test-"))
        self.home = self.root / "home"
        self.home.mkdir()
        self.global_config = self.home / ".gitconfig"
        self.global_config.write_text(
            "[init]\n"
            "\tdefaultBranch = main\n"
            "[protocol \"file\"]\n"
            "\tallow = always\n"
        )
        self._env_patch = patch.dict(os.environ, {
            "HOME": str(self.home),
            "GIT_CONFIG_GLOBAL": str(self.global_config),
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_AUTHOR_NAME": "Test User",
            "GIT_AUTHOR_EMAIL": "test@example.com",
            "GIT_COMMITTER_NAME": "Test User",
            "GIT_COMMITTER_EMAIL": "test@example.com",
        })
        self._env_patch.start()
        return self

    def stop(self) -> None:
        if self._env_patch is not None:
            self._env_patch.stop()
            self._env_patch = None
        if self.root is not None and self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "GitSandbox":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def git(self, cwd: Path, *args: str) -> str:
        """Run git directly, bypassing the code under test."""
        result = subprocess.run(
            [get_git_executable(), *args],
            cwd=str(cwd),
            check=True,
            capture_output=True,
            text=True
        )
        return result.stdout.strip()

    def commit(self, repo: Path, filename: str, content: str, message: str) -> str:
        """Write a file, commit it and return the new commit id."""
        target = repo / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        self.git(repo, "add", filename)
        self.git(repo, "commit", "-m", message)
        return self.git(repo, "rev-parse", "HEAD")

    def make_upstream(self, name: str = "upstream") -> Path:
        """
        Create a repository to clone from.

        History: ``main`` has two commits with tag ``v1.0`` on the first;
        branch ``feature`` adds ``feature.txt`` on top of the first commit.
        """
        repo = self.root / name
        repo.mkdir()
        self.git(repo, "init")
        self.git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
        first = self.commit(repo, "README.md", f"# {name}\n", "Initial commit")
        self.git(repo, "tag", "-a", "v1.0", "-m", "Release 1.0")
        self.git(repo, "checkout", "-b", "feature")
        self.commit(repo, "feature.txt", "feature work\n", "Add feature")
        self.git(repo, "checkout", "main")
        self.commit(repo, "README.md", f"# {name}\n\nSecond revision\n", "Second commit")
        self.first_commit = first
        return repo

    def path(self, name: str) -> Path:
        return self.root / name

    def config_values(self, cwd: Path, key: str, *options: str) -> List[str]:
        """All values of ``key``; empty when it is not set."""
        result = subprocess.run(
            [get_git_executable(), "config", *options, "--get-all", key],
            cwd=str(cwd),
            capture_output=True,
            text=True
        )
        return [line for line in result.stdout.splitlines() if line]
