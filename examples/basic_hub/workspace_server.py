"""
Demo workspace server. Several tools overlap on "file", "note" and "search",
so pattern searches through the hub have something to tell apart.
"""

import os
import sys

from mcp.server.fastmcp import FastMCP

app = FastMCP("workspace-server")

WORKSPACE = os.environ.get("WORKSPACE_NAME", "demo")

FILES = {
    "README.md": "# Demo workspace\nNotes and files for the hub example.",
    "todo.txt": "- try find_tools\n- call a tool",
}
NOTES = {
    "standup": "Hub connects to every server in mcp-config.json.",
    "ideas": "Search tool names and descriptions with a regex.",
}


@app.tool()
async def read_file(path: str) -> str:
    """Read a file from the workspace."""
    print(f"[{WORKSPACE}] read_file {path}", file=sys.stderr)
    return FILES.get(path, f"No such file: {path}")


@app.tool()
async def list_files() -> list[str]:
    """List the files in the workspace."""
    return sorted(FILES)


@app.tool()
async def search_files(query: str) -> list[str]:
    """Search file contents for a substring, case-insensitively."""
    return [name for name, text in FILES.items() if query.lower() in text.lower()]


@app.tool()
async def search_notes(query: str) -> list[str]:
    """Find notes whose text mentions the query."""
    return [name for name, text in NOTES.items() if query.lower() in text.lower()]


@app.tool()
async def read_note(name: str) -> str:
    """Read one note by name. Notes are short text, unlike files."""
    return NOTES.get(name, f"No such note: {name}")


@app.tool()
async def workspace_info() -> dict:
    return {"workspace": WORKSPACE, "files": len(FILES), "notes": len(NOTES)}


if __name__ == "__main__":
    app.run()
