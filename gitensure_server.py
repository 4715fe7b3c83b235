#!/usr/bin/env python3
"""
gitensure MCP server

Keeps git repositories on disk in a declared state, exposed to MCP clients
over stdio.
"""

from gitensure.server import main


if __name__ == "__main__":
    main()
