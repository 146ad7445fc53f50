# main.py

import argparse
import asyncio
import datetime
import logging
import os
import sys

from kai.command_executor import DEFAULT_EXECUTION_TIMEOUT, run_kubectl_command
from kai.config_handler import load_configuration
from kai.interaction_loop import DEFAULT_EXIT_KEYWORDS, InteractionLoop, LocalResponder
from kai.ollama_gateway import InferenceGateway
from kai.session_state import SessionState
from kai.tool_client import DEFAULT_ENDPOINT, DEFAULT_TOOL_NAME, ToolClient
from kai.tool_server import ToolServer
from kai.ui_manager import UIManager

LOG_DIR = "logs"
CONFIG_DIR = "config"

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
LOG_FILE = os.path.join(SCRIPT_DIR, LOG_DIR, "kai.log")

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = LOG_FILE):
    """Sends all logging to a file; stdout stays free for the UI and the stdio transport."""
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
        handlers=[logging.FileHandler(log_file)]
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="KAI: natural language to kubectl assistant backed by a local Ollama model.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--cli", dest="mode", action="store_const", const="cli",
                      help="Run the interactive loop locally and offer to execute suggested commands")
    mode.add_argument("--sse", dest="mode", action="store_const", const="sse",
                      help="Serve the ask_model tool over SSE (default)")
    mode.add_argument("--stdio", dest="mode", action="store_const", const="stdio",
                      help="Serve the ask_model tool over stdio")
    mode.add_argument("--client", dest="mode", action="store_const", const="client",
                      help="Run the interactive client against a running SSE server")
    parser.add_argument("-n", "--namespace", default="", help="Initial namespace for the session")
    parser.add_argument("--endpoint", default=None, help="SSE endpoint of the tool server (client mode)")
    parser.add_argument("--config-dir", default=os.path.join(SCRIPT_DIR, CONFIG_DIR),
                        help="Directory holding default_config.json and user_config.json")
    parser.set_defaults(mode="sse")
    return parser.parse_args(argv)


def build_session_state(config: dict, namespace: str) -> SessionState:
    session_config = config.get("session", {})
    return SessionState(
        namespace=namespace,
        track_short_flag=session_config.get("track_short_namespace_flag", True),
    )


def build_ui(config: dict) -> UIManager:
    history_file = config.get("ui", {}).get("history_file")
    history_path = os.path.join(SCRIPT_DIR, history_file) if history_file else None
    return UIManager(history_path=history_path)


async def run_cli(config: dict, namespace: str):
    """Local loop: the model is queried in-process and commands can be executed."""
    ui = build_ui(config)
    gateway = InferenceGateway(config)
    ui.append_output("K8s AI Agent CLI", style_class='welcome')
    if not await gateway.is_server_running():
        ui.append_output("⚠️ Ollama service is not available. Requests will fail until it is started.", style_class='warning')

    loop = InteractionLoop(
        ui,
        LocalResponder(gateway),
        session_state=build_session_state(config, namespace),
        executor=run_kubectl_command,
        exit_keywords=config.get("session", {}).get("exit_keywords", DEFAULT_EXIT_KEYWORDS),
        execution_timeout=config.get("execution", {}).get("timeout_seconds", DEFAULT_EXECUTION_TIMEOUT),
    )
    await loop.run()


async def run_client(config: dict, namespace: str, endpoint: str = None):
    """Remote loop: prompts go to the ask_model tool of a running server."""
    ui = build_ui(config)
    endpoint = endpoint or config.get("client", {}).get("endpoint", DEFAULT_ENDPOINT)
    tool_name = config.get("server", {}).get("tool_name", DEFAULT_TOOL_NAME)

    async with ToolClient(endpoint, tool_name=tool_name) as client:
        ui.append_output(f"Initialized {client.server_info.name} {client.server_info.version}", style_class='success')
        loop = InteractionLoop(
            ui,
            client,
            session_state=build_session_state(config, namespace),
            exit_keywords=config.get("session", {}).get("exit_keywords", DEFAULT_EXIT_KEYWORDS),
        )
        await loop.run()


async def run_server(config: dict, transport: str):
    tool_server = ToolServer(config)
    if transport == "stdio":
        await tool_server.serve_stdio()
    else:
        print(f"Starting SSE server on {tool_server.host}:{tool_server.port}", file=sys.stderr)
        await tool_server.serve_sse()


async def main_async_runner(args: argparse.Namespace):
    config = load_configuration(args.config_dir)
    logger.info(f"Starting in '{args.mode}' mode.")
    if args.mode == "cli":
        await run_cli(config, args.namespace)
    elif args.mode == "client":
        await run_client(config, args.namespace, args.endpoint)
    else:
        await run_server(config, args.mode)


def run(argv=None) -> int:
    """ Main entry point. Returns the process exit code. """
    args = parse_args(argv)
    setup_logging()
    logger.info("=" * 80)
    logger.info("  KAI Session Started")
    logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 80)
    exit_code = 0
    try:
        asyncio.run(main_async_runner(args))
    except FileNotFoundError as e:
        print(f"\nFATAL STARTUP ERROR: {e}", file=sys.stderr)
        print(f"Please ensure '{os.path.join(args.config_dir, 'default_config.json')}' exists and is a valid JSON file.", file=sys.stderr)
        logger.critical(f"Application halting due to fatal configuration error: {e}")
        exit_code = 1
    except KeyboardInterrupt:
        logger.info("Exiting due to KeyboardInterrupt.")
    except Exception as e:
        print(f"\nUnexpected critical error: {e}. Check logs at {LOG_FILE}", file=sys.stderr)
        logger.critical("Critical error in main_async_runner", exc_info=True)
        exit_code = 1
    finally:
        logger.info("=" * 80)
        logger.info("  KAI Session Ended")
        logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 80)
        logging.shutdown()
    return exit_code


if __name__ == "__main__":
    sys.exit(run())
