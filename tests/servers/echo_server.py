"""
Minimal stdio MCP server used by the integration tests.
"""

import os
import sys

from mcp.server.fastmcp import FastMCP

app = FastMCP("echo-server")


@app.tool()
async def echo(text: str) -> str:
    """Return the text unchanged."""
    print(f"Received echo request: {text}", file=sys.stderr)
    return text


@app.tool()
async def read_env(name: str) -> str:
    """Return the value of an environment variable of this process."""
    return os.environ.get(name, "")


if __name__ == "__main__":
    app.run()
