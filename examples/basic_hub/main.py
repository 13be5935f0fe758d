"""
Basic hub example: connect to the servers in mcp-config.json, search their
tools a few ways and call one.

Run from this directory so the relative server path resolves:
    python main.py
"""

import asyncio
import os

from mcp_hub import InvalidPatternError, MCPHub, NotConnectedError


def print_matches(title, matches):
    print(f"\n{title}")
    for server_name, results in matches.items():
        for result in results:
            print(f"  {server_name}: {result.model_dump(exclude_none=True)}")


async def main():
    """Run the basic hub example."""
    config_path = os.path.join(os.path.dirname(__file__), "mcp-config.json")

    # The "remote" entry fails unless a server listens on localhost:8000;
    # the hub logs it and carries on with the others.
    async with MCPHub(config_path=config_path, auto_load=True) as hub:
        print(f"Connected servers: {hub.list_servers()}")

        # "file" matches three tools by name and read_note by its description
        print_matches("Tools about files:", await hub.find_tools("file"))
        print_matches("Tools named search_*:", await hub.find_tools("^search_", search_in="name"))
        print_matches("Case-sensitive 'Notes':", await hub.find_tools("Notes", case_sensitive=True))

        try:
            await hub.find_tools("read(")
        except InvalidPatternError as e:
            print(f"\n{e.message}")

        try:
            tool = await hub.get_tool("workspace", "workspace_info")
            result = await hub.call_tool("workspace", "read_file", {"path": "todo.txt"})
        except NotConnectedError as e:
            print(f"\n{e.message}")
            return

        print(f"\n{tool.name} has no description: {tool.description!r}")
        print("\nread_file todo.txt:")
        for content in result.content:
            print(f"  {content.text}")


if __name__ == "__main__":
    asyncio.run(main())
