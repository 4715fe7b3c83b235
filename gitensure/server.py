"""MCP server exposing repository reconciliation as tools."""

import logging
import sys
from typing import Any, Dict, Optional, Union

from mcp.server.fastmcp import FastMCP

from .config import Config, load_configuration, validate_configuration
from .errors import error_handler
from .reconcile import (
    CommandGateway,
    ConvergenceExecutor,
    DesiredState,
    InvocationOptions,
    StateInspector,
    converge_repository,
    desired_state_from_dict,
)


def setup_logging(config: Config) -> None:
    """Setup logging configuration with structured operation prefixes."""
    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            if hasattr(record, 'operation'):
                record.msg = f"[{record.operation}] {record.msg}"
            return super().format(record)

    # stdout carries the MCP protocol, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )

    loggers = [
        'gitensure.init',
        'gitensure.reconcile',
        'gitensure.error_handler',
    ]

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, config.log_level))

        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False


def _checked_desired(data: Dict[str, Any], server_config: Config) -> DesiredState:
    desired = desired_state_from_dict(data)
    if not server_config.allows_path(desired.path):
        raise ValueError(f"path {desired.path} is outside of {server_config.base_dir}")
    return desired


def register_tools(server: FastMCP, server_config: Config) -> None:
    """Register MCP tools with the server instance."""

    @server.tool()
    def ensure_repository(desired: Dict[str, Any]) -> dict:
        """
        Converge a git repository on disk to a desired state.

        Args:
            desired: Desired state. ``path`` is required; other keys are
                ensure (present, absent, bare, mirror, latest), source (URL or
                map of remote name to URL), revision, remote, branch, depth,
                submodules, keep_local_changes, excludes, owner, group, user,
                identity, trust_server_cert, http_proxy, skip_hooks,
                safe_directory, force and umask.

        Returns:
            The changes made and the commit HEAD ended up at, or an error
        """
        try:
            desired_state = _checked_desired(desired, server_config)
            return converge_repository(desired_state, server_config).to_dict()
        except Exception as e:
            return error_handler.handle_reconcile_error(
                e, {'operation': 'ensure_repository', 'repository_path': desired.get('path')}
            ).to_dict()

    @server.tool()
    def repository_status(path: str, source: Optional[Union[str, Dict[str, str]]] = None, remote: str = "origin") -> dict:
        """
        Inspect a repository without changing it.

        Args:
            path: Repository directory
            source: Optional expected source, used to decide whether the
                working copy is the expected repository
            remote: Remote the source URL belongs to

        Returns:
            Layout, remotes, branches, tags, current commit and flags
        """
        try:
            desired_state = _checked_desired({'path': path, 'source': source, 'remote': remote}, server_config)
            gateway = CommandGateway(git_executable=server_config.git_executable)
            inspector = StateInspector(gateway, desired_state.path)
            status = inspector.snapshot().to_dict()
            status['exists'] = inspector.working_copy_exists(desired_state) or inspector.bare_exists()
            return status
        except Exception as e:
            return error_handler.handle_reconcile_error(
                e, {'operation': 'repository_status', 'repository_path': path}
            ).to_dict()

    @server.tool()
    def repository_revision(desired: Dict[str, Any]) -> dict:
        """
        Report the revision a repository is at, as compared to a desired state.

        The desired revision name is reported when HEAD is at the commit it
        names; otherwise the commit id of HEAD is reported.

        Args:
            desired: Desired state, as for ensure_repository

        Returns:
            Current revision, desired revision and whether they match
        """
        try:
            desired_state = _checked_desired(desired, server_config)
            executor = ConvergenceExecutor(
                desired_state,
                server_config,
                CommandGateway(InvocationOptions.from_desired(desired_state), server_config.git_executable),
            )
            current = executor.get_revision()
            return {
                'path': str(desired_state.path),
                'revision': current,
                'desired_revision': desired_state.revision,
                'in_sync': desired_state.revision is None or current == desired_state.revision,
            }
        except Exception as e:
            return error_handler.handle_reconcile_error(
                e, {'operation': 'repository_revision', 'repository_path': desired.get('path')}
            ).to_dict()

    init_logger = logging.getLogger('gitensure.init')
    init_logger.info("MCP tools registered successfully")


def initialize_server(server_config: Optional[Config] = None) -> FastMCP:
    """Initialize the MCP server with stdio transport."""
    server_config = server_config or load_configuration()
    validation_issues = validate_configuration(server_config)

    setup_logging(server_config)
    init_logger = logging.getLogger('gitensure.init')

    for issue in validation_issues:
        if issue.startswith("ERROR:"):
            init_logger.error(issue[7:])
        elif issue.startswith("WARNING:"):
            init_logger.warning(issue[9:])

    error_count = sum(1 for issue in validation_issues if issue.startswith("ERROR:"))
    if error_count > 0:
        init_logger.critical(f"Server startup failed due to {error_count} configuration error(s)")
        raise SystemExit(1)

    init_logger.info("Configuration loaded successfully")

    server = FastMCP("gitensure", log_level=server_config.log_level)
    register_tools(server, server_config)
    return server


def main():
    """Main entry point for the gitensure MCP server."""
    try:
        server = initialize_server()
        logging.getLogger('gitensure.init').info("Starting server with stdio transport")
        server.run(transport="stdio")
    except KeyboardInterrupt:
        logging.getLogger('gitensure.init').info("Server stopped by user (Ctrl+C)")
    except SystemExit:
        raise
    except Exception as e:
        logging.getLogger('gitensure.init').critical(f"Server failed to start: {e}", exc_info=True)
        sys.exit(1)
