"""
gitensure - keep git repositories on disk in a declared state.

Reconciles a working copy, bare repository or mirror against a desired
configuration (source remotes, revision, layout, hooks) using the git binary.
The MCP server entry point lives in ``gitensure.server``.
"""

__version__ = "1.0.0"
__description__ = "Converge git repositories on disk towards a declared state"

__all__ = ["__version__", "__description__"]
