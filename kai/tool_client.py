# kai/tool_client.py

import logging
from contextlib import AsyncExitStack
from typing import Optional

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.types import CallToolResult, TextContent
from pydantic import ValidationError

from kai.errors import MalformedResponseError, ToolCallError
from kai.response_classifier import StructuredResponse

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:8080/sse"
DEFAULT_TOOL_NAME = "ask_model"


def decode_tool_result(result: CallToolResult) -> StructuredResponse:
    """Turns an ask_model tool result into a StructuredResponse.

    Raises:
        ToolCallError: If the server reported an error.
        MalformedResponseError: If the payload is missing or not a valid response.
    """
    texts = [item.text for item in result.content if isinstance(item, TextContent)]
    if result.isError:
        raise ToolCallError(" ".join(texts) or "tool call failed")
    if not result.content:
        raise MalformedResponseError("No content in response.")

    first = result.content[0]
    if not isinstance(first, TextContent):
        raise MalformedResponseError("Unsupported content type. Expected TextContent.")

    try:
        return StructuredResponse.model_validate_json(first.text)
    except ValidationError as e:
        raise MalformedResponseError(str(e), raw=first.text) from e


class ToolClient:
    """MCP client for the ask_model tool, connected over SSE.

    Use as an async context manager; the connection and session are closed on exit.
    """

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT, tool_name: str = DEFAULT_TOOL_NAME):
        self.endpoint = endpoint
        self.tool_name = tool_name
        self.session: Optional[ClientSession] = None
        self.server_info = None
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self):
        self._stack = AsyncExitStack()
        try:
            read_stream, write_stream = await self._stack.enter_async_context(sse_client(self.endpoint))
            self.session = await self._stack.enter_async_context(ClientSession(read_stream, write_stream))
            init_result = await self.session.initialize()
        except BaseException:
            await self._stack.aclose()
            raise
        self.server_info = init_result.serverInfo
        logger.info(f"Connected to {self.server_info.name} {self.server_info.version} at {self.endpoint}")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self.session = None

    async def ask(self, prompt: str) -> StructuredResponse:
        if self.session is None:
            raise ToolCallError("tool client is not connected")
        logger.debug(f"Calling tool '{self.tool_name}' ({len(prompt)} prompt chars).")
        try:
            result = await self.session.call_tool(self.tool_name, {"prompt": prompt})
        except Exception as e:
            # The MCP session raises McpError and transport errors for failed requests.
            logger.error(f"Tool call '{self.tool_name}' failed: {e}", exc_info=True)
            raise ToolCallError(str(e)) from e
        return decode_tool_result(result)
