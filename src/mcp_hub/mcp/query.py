"""
Tool queries across the servers in a session registry.

Every query lists tools live from the upstream; nothing is cached between
calls, so two queries against the same server may see different tools.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from mcp.types import CallToolResult, Tool

from mcp_hub.errors import InvalidPatternError, MCPHubError, ToolNotFoundError
from mcp_hub.mcp.registry import SessionRegistry
from mcp_hub.utils.logging import get_logger

logger = get_logger(__name__)


class SearchField(str, Enum):
    """Which tool field(s) a pattern search tests."""

    NAME = "name"
    DESCRIPTION = "description"
    BOTH = "both"


class ToolSummary(BaseModel):
    """A tool reduced to its name and description; the input schema is dropped."""

    name: str
    description: Optional[str] = None


class ToolSearchError(BaseModel):
    """Stands in for a server's results when searching that server failed."""

    error: str


ToolSearchResult = Union[ToolSummary, ToolSearchError]


def compile_pattern(pattern: str, case_sensitive: bool = False) -> "re.Pattern[str]":
    """
    Compile a search pattern.

    Raises:
        InvalidPatternError: If the pattern is not a valid regular expression.
    """
    try:
        return re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


def tool_matches(tool: Tool, regex: "re.Pattern[str]", search_in: SearchField) -> bool:
    """True if any selected field that is present contains a match for ``regex``."""
    if search_in is not SearchField.DESCRIPTION and tool.name and regex.search(tool.name):
        return True
    if (
        search_in is not SearchField.NAME
        and tool.description
        and regex.search(tool.description)
    ):
        return True
    return False


def summarize(tool: Tool) -> ToolSummary:
    return ToolSummary(name=tool.name, description=tool.description)


class ToolQueryEngine:
    """
    Lists, looks up, searches and calls tools by (server, tool) coordinate.

    Holds no state besides the registry it queries.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def list_tools(self, server_name: str) -> List[Tool]:
        """Return the server's live tool listing."""
        return await self.registry.get(server_name).list_tools()

    async def list_tools_in_server(self, server_name: str) -> List[Tool]:
        """
        Return every tool of a server with its full descriptor.

        An upstream reporting no tools yields an empty list.
        """
        tools = await self.list_tools(server_name)
        logger.debug(f"{server_name}: Listed {len(tools)} tools")
        return tools

    async def get_tool(self, server_name: str, tool_name: str) -> Tool:
        """
        Return the full descriptor, input schema included, of one tool.

        Args:
            server_name: Server to query.
            tool_name: Exact, case-sensitive tool name.

        Raises:
            NotConnectedError: If the server is not connected.
            ToolNotFoundError: If the server has no tool with that name.
        """
        for tool in await self.list_tools(server_name):
            if tool.name == tool_name:
                return tool
        raise ToolNotFoundError(server_name, tool_name)

    async def find_tools_in_server(
        self,
        server_name: str,
        pattern: str,
        search_in: Union[SearchField, str] = SearchField.BOTH,
        case_sensitive: bool = False,
    ) -> List[ToolSummary]:
        """
        Find the tools of one server whose name and/or description match a pattern.

        The pattern is searched for anywhere in a field; anchor it with ^ and $
        to match whole values.

        Args:
            server_name: Server to search.
            pattern: Regular expression.
            search_in: "name", "description" or "both".
            case_sensitive: Match case exactly instead of ignoring it.

        Returns:
            Matching tools as name/description summaries.

        Raises:
            InvalidPatternError: If the pattern does not compile.
            NotConnectedError: If the server is not connected.
            UpstreamError: If listing the server's tools fails.
        """
        search_in = SearchField(search_in)
        regex = compile_pattern(pattern, case_sensitive)
        tools = await self.list_tools(server_name)
        return [summarize(tool) for tool in tools if tool_matches(tool, regex, search_in)]

    async def find_tools(
        self,
        pattern: str,
        search_in: Union[SearchField, str] = SearchField.BOTH,
        case_sensitive: bool = False,
    ) -> Dict[str, List[ToolSearchResult]]:
        """
        Search every connected server for tools matching a pattern.

        Servers without matches are left out. A server that cannot be listed
        gets a single ToolSearchError entry instead of failing the search.

        Raises:
            InvalidPatternError: If the pattern does not compile. No server is
                contacted in that case.
        """
        search_in = SearchField(search_in)
        regex = compile_pattern(pattern, case_sensitive)

        results: Dict[str, List[ToolSearchResult]] = {}
        for server_name in self.registry.list():
            try:
                tools = await self.list_tools(server_name)
            except MCPHubError as e:
                logger.warning(f"{server_name}: Tool search failed: {e.message}")
                results[server_name] = [
                    ToolSearchError(error=f"Failed to search tools: {e.message}")
                ]
                continue

            matched = [summarize(tool) for tool in tools if tool_matches(tool, regex, search_in)]
            if matched:
                results[server_name] = matched

        return results

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> CallToolResult:
        """
        Call a tool on a server and return the upstream's result unmodified.

        Raises:
            NotConnectedError: If the server is not connected.
            UpstreamError: If the call fails.
        """
        logger.info(
            "Requesting tool call",
            data={"tool_name": tool_name, "server_name": server_name},
        )
        return await self.registry.get(server_name).call_tool(tool_name, arguments)
