# kai/command_executor.py

import asyncio
import logging
import shlex
import subprocess
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_TIMEOUT = 60


async def run_kubectl_command(command: str, timeout: Optional[int] = DEFAULT_EXECUTION_TIMEOUT) -> Tuple[bool, str, str]:
    """Runs a suggested command and returns (success, combined output, error message).

    The command is split with shlex and executed without a shell, so pipes and
    redirections in model output are passed as literal arguments.
    """
    try:
        args = shlex.split(command)
    except ValueError as e:
        logger.warning(f"Could not parse command '{command}': {e}")
        return False, "", f"could not parse command: {e}"
    if not args:
        return False, "", "empty command"

    logger.info(f"Executing confirmed command: {args}")
    try:
        process = await asyncio.to_thread(
            subprocess.run,
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
            timeout=timeout,
            errors='replace'
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command '{command}' timed out after {timeout} seconds.")
        return False, "", f"command timed out after {timeout} seconds"
    except FileNotFoundError:
        logger.error(f"Executable '{args[0]}' not found while running '{command}'.")
        return False, "", f"executable not found: {args[0]}"
    except OSError as e:
        logger.error(f"Failed to start command '{command}': {e}", exc_info=True)
        return False, "", str(e)

    output = process.stdout or ""
    if process.returncode != 0:
        logger.warning(f"Command '{command}' exited with status {process.returncode}.")
        return False, output, f"exit status {process.returncode}"
    logger.debug(f"Command '{command}' succeeded.")
    return True, output, ""
