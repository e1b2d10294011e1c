"""
Stdio MCP server spawned by the session tests

Tools:
- read_file: text content of a file
- slow: sleeps before answering, for cancellation
- die: terminates the server process, for reconnect handling
"""

import asyncio
import os
from pathlib import Path

from mcp.server.fastmcp import FastMCP


def _initialize_fast_mcp_server() -> FastMCP:
    app = FastMCP(name="test-files", instructions="File tools for session tests")

    @app.tool()
    async def read_file(path: str) -> str:
        """Read a UTF-8 text file"""
        return Path(path).read_text(encoding="utf-8")

    @app.tool()
    async def slow(seconds: float = 30.0) -> str:
        """Answer after `seconds`"""
        await asyncio.sleep(seconds)
        return "finished"

    @app.tool()
    async def die() -> str:
        """Exit the server process without answering"""
        os._exit(1)

    return app


if __name__ == "__main__":
    _initialize_fast_mcp_server().run(transport="stdio")
