# kai/tool_server.py

import logging
from typing import Any, Dict, Optional

import mcp.types as types
import uvicorn
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Mount, Route

from kai.errors import EmptyArgumentsError
from kai.ollama_gateway import InferenceGateway
from kai.response_classifier import classify

# --- Logging Setup ---
logger = logging.getLogger(__name__)

DEFAULT_SERVER_NAME = "K8s AI Agent (KAI)"
DEFAULT_SERVER_VERSION = "0.0.1"
DEFAULT_TOOL_NAME = "ask_model"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080

ASK_MODEL_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "prompt": {
            "type": "string",
            "description": "Prompt to send to the local Ollama model",
        }
    },
    "required": ["prompt"],
}


async def handle_ask_model(arguments: Optional[Dict[str, Any]], gateway: InferenceGateway) -> str:
    """Runs the ask_model tool and returns the JSON-encoded structured response.

    Raises:
        EmptyArgumentsError: If the 'prompt' argument is missing or not a string.
        InferenceError: If the model backend fails.
    """
    prompt = (arguments or {}).get("prompt")
    if not isinstance(prompt, str):
        raise EmptyArgumentsError("required argument 'prompt' is missing or not a string")

    raw = await gateway.generate(prompt)
    response = classify(raw)
    logger.info(f"ask_model classified response as {response.type.value}.")
    return response.model_dump_json()


def create_server(config: Dict[str, Any], gateway: InferenceGateway) -> Server:
    """Builds the MCP server exposing the ask_model tool."""
    server_config = config.get("server", {})
    tool_name = server_config.get("tool_name", DEFAULT_TOOL_NAME)
    server = Server(
        server_config.get("name", DEFAULT_SERVER_NAME),
        version=server_config.get("version", DEFAULT_SERVER_VERSION),
    )

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=tool_name,
                description="Send a prompt to the local Ollama LLM and get a classified kubectl answer",
                inputSchema=ASK_MODEL_INPUT_SCHEMA,
            )
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> list[types.TextContent]:
        # Exceptions raised here are returned to the caller as tool error results.
        if name != tool_name:
            raise ValueError(f"Unknown tool: {name}")
        payload = await handle_ask_model(arguments, gateway)
        return [types.TextContent(type="text", text=payload)]

    return server


def create_sse_app(server: Server) -> Starlette:
    """Wraps the MCP server in a Starlette app with '/sse' and '/messages/' routes."""
    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request):
        logger.info(f"SSE session opened from {request.client}")
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        logger.info(f"SSE session closed for {request.client}")
        return Response()

    return Starlette(
        routes=[
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
        ]
    )


class ToolServer:
    """Serves the ask_model tool over SSE (uvicorn) or stdio."""

    def __init__(self, config: Dict[str, Any], gateway: Optional[InferenceGateway] = None):
        server_config = config.get("server", {})
        self.host = server_config.get("host", DEFAULT_HOST)
        self.port = server_config.get("port", DEFAULT_PORT)
        self.gateway = gateway or InferenceGateway(config)
        self.server = create_server(config, self.gateway)

    async def serve_sse(self):
        app = create_sse_app(self.server)
        # log_config=None keeps uvicorn on the application's logging setup.
        uvicorn_config = uvicorn.Config(app, host=self.host, port=self.port, log_config=None)
        logger.info(f"Starting SSE server on {self.host}:{self.port}")
        await uvicorn.Server(uvicorn_config).serve()

    async def serve_stdio(self):
        logger.info("Starting stdio server")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(read_stream, write_stream, self.server.create_initialization_options())
