"""switchboard/servers/workspace.py

FastMCP server exposing file tools sandboxed to one directory.

This is the bundled ``workspace`` provider of the default catalog. Run it as:

    python -m switchboard.servers.workspace /path/to/root

Paths given to the tools are relative to the root; any path resolving outside
it is rejected as a tool error.
"""

from __future__ import annotations

# Standard Library
import os
import sys
import json
import logging
from pathlib import Path

# Third-Party Libraries
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

logger = logging.getLogger(__name__)

# Reads beyond this size are refused rather than streamed to the model.
MAX_READ_BYTES = 1_000_000


def build_server(root: str | Path) -> FastMCP:
    """Create a workspace server serving ``root``.

    Args:
        root: Directory the tools may read and write.

    Returns:
        The configured FastMCP server.
    """
    base = Path(root).expanduser().resolve()
    mcp: FastMCP = FastMCP(
        "switchboard-workspace",
        instructions=(
            f"File tools for the workspace at {base}. "
            "All paths are relative to the workspace root."
        ),
    )

    def resolve(path: str) -> Path:
        target = (base / path).resolve()
        if target != base and base not in target.parents:
            raise ToolError(f"Path escapes the workspace: {path}")
        return target

    @mcp.tool()
    def read_file(path: str) -> str:
        """Read a UTF-8 text file from the workspace.

        Args:
            path: File path relative to the workspace root.

        Returns:
            The file contents.
        """
        target = resolve(path)
        if not target.is_file():
            raise ToolError(f"No such file: {path}")
        if target.stat().st_size > MAX_READ_BYTES:
            raise ToolError(f"File too large to read: {path}")
        return target.read_text(encoding="utf-8", errors="replace")

    @mcp.tool()
    def write_file(path: str, content: str) -> str:
        """Write a UTF-8 text file in the workspace, creating parent directories.

        Args:
            path: File path relative to the workspace root.
            content: Text to write; replaces any existing content.

        Returns:
            A short confirmation.
        """
        target = resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.info("[write_file] %s (%d chars)", target, len(content))
        return f"Wrote {len(content)} characters to {path}"

    @mcp.tool()
    def list_directory(path: str = ".") -> str:
        """List a workspace directory.

        Args:
            path: Directory path relative to the workspace root.

        Returns:
            JSON array of entries with name and type ("file" or "directory").
        """
        target = resolve(path)
        if not target.is_dir():
            raise ToolError(f"No such directory: {path}")
        entries = [
            {"name": child.name, "type": "directory" if child.is_dir() else "file"}
            for child in sorted(target.iterdir(), key=lambda p: p.name)
        ]
        return json.dumps(entries)

    return mcp


def main() -> None:
    root = sys.argv[1] if len(sys.argv) > 1 else os.getenv("WORKSPACE_ROOT", ".")
    build_server(root).run()


if __name__ == "__main__":
    main()
