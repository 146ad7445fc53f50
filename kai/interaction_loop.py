# kai/interaction_loop.py

import logging
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from kai.errors import InferenceError, MalformedResponseError
from kai.ollama_gateway import InferenceGateway
from kai.prompt_composer import compose
from kai.response_classifier import ResponseKind, StructuredResponse, classify
from kai.session_state import SessionState

logger = logging.getLogger(__name__)

DEFAULT_EXIT_KEYWORDS = ("quit", "exit")
CONFIRM_PROMPT = "Run this command? [y/N]: "

Executor = Callable[..., Awaitable[Tuple[bool, str, str]]]


class LocalResponder:
    """Answers prompts in-process: Ollama gateway followed by the classifier."""

    def __init__(self, gateway: InferenceGateway):
        self.gateway = gateway

    async def ask(self, prompt: str) -> StructuredResponse:
        raw = await self.gateway.generate(prompt)
        return classify(raw)


class InteractionLoop:
    """Drives a session: read a line, ask the model, track the namespace, render.

    The responder is anything with an async `ask(prompt) -> StructuredResponse`
    (a LocalResponder or a ToolClient). When an executor is given, every
    suggested command is offered for execution behind a y/N confirmation.
    """

    def __init__(self, ui, responder, session_state: Optional[SessionState] = None,
                 executor: Optional[Executor] = None,
                 exit_keywords: Iterable[str] = DEFAULT_EXIT_KEYWORDS,
                 execution_timeout: Optional[int] = None):
        self.ui = ui
        self.responder = responder
        self.session_state = session_state if session_state is not None else SessionState()
        self.executor = executor
        self.exit_keywords = {keyword.lower() for keyword in exit_keywords}
        self.execution_timeout = execution_timeout

    def prompt_text(self) -> str:
        if self.session_state.namespace:
            return f"[{self.session_state.namespace}] > "
        return "> "

    async def run(self):
        """Runs until an exit keyword is entered or input ends."""
        keywords = "' or '".join(sorted(self.exit_keywords))
        self.ui.append_output(f"Enter your prompts (type '{keywords}' to exit, ':namespace <ns>' to change namespace):", style_class='welcome')
        while True:
            try:
                line = await self.ui.prompt_input(self.prompt_text())
            except (EOFError, KeyboardInterrupt):
                logger.info("Input stream ended; closing session.")
                self.ui.append_output("Exiting.", style_class='info')
                break
            if not await self.handle_line(line):
                break
        logger.info("Interaction loop closed.")

    async def handle_line(self, line: str) -> bool:
        """Processes one input line. Returns False once the session should close."""
        user_input = line.strip()
        if not user_input:
            return True

        if user_input.lower() in self.exit_keywords:
            self.ui.append_output("Exiting.", style_class='info')
            return False

        if self.session_state.is_directive(user_input):
            self._handle_namespace_directive(user_input)
            return True

        await self.process_turn(user_input)
        return True

    def _handle_namespace_directive(self, user_input: str):
        before = self.session_state.namespace
        self.session_state.apply_directive(user_input)
        if self.session_state.namespace != before:
            self.ui.append_output(f"Namespace set to '{self.session_state.namespace}'", style_class='success')
        elif self.session_state.namespace:
            self.ui.append_output(f"Namespace is '{self.session_state.namespace}'", style_class='info')
        else:
            self.ui.append_output("No namespace set. Usage: :namespace <ns>", style_class='info')

    async def process_turn(self, user_input: str) -> Optional[StructuredResponse]:
        """Runs one full turn for `user_input`. Returns None if the turn was aborted."""
        prompt = compose(user_input, self.session_state.namespace)
        logger.info(f"Turn started for input: '{user_input}' (namespace: '{self.session_state.namespace}')")

        try:
            response = await self.responder.ask(prompt)
        except MalformedResponseError as e:
            logger.error(f"Malformed response: {e}")
            self.ui.append_output(f"Error parsing response: {e}", style_class='error')
            self.ui.append_output(f"Raw response: {e.raw}", style_class='default')
            return None
        except InferenceError as e:
            logger.error(f"Model request failed: {e}")
            self.ui.append_output(f"AI error: {e}", style_class='error')
            return None

        if response.command:
            before = self.session_state.namespace
            namespace = self.session_state.update_from_command(response.command)
            if namespace and namespace != before:
                self.ui.append_output(f"[Context] Namespace updated to: {namespace}", style_class='context')

        self.render(response)

        if self.executor is not None and response.command:
            await self._confirm_and_execute(response.command)
        return response

    def render(self, response: StructuredResponse):
        kind = response.type
        if kind == ResponseKind.COMMAND:
            self._render_command(response.command)
        elif kind == ResponseKind.EXPLANATION:
            self._render_explanation(response.content)
        elif kind == ResponseKind.FULL:
            if response.command:
                self._render_command(response.command)
            if response.content:
                self._render_explanation(response.content)
        else:
            kind_name = getattr(kind, "value", kind)
            logger.warning(f"Unexpected response type: {kind_name}")
            self.ui.append_output(f"Unexpected response type: {kind_name}", style_class='warning')

    def _render_command(self, command: str):
        self.ui.append_output("Command:", style_class='command-header')
        self.ui.append_output(command, style_class='command')

    def _render_explanation(self, content: str):
        self.ui.append_output("Explanation:", style_class='explanation-header')
        self.ui.append_output(content, style_class='explanation')

    async def _confirm_and_execute(self, command: str):
        try:
            answer = await self.ui.prompt_input(CONFIRM_PROMPT, style_class='confirm-prompt')
        except (EOFError, KeyboardInterrupt):
            answer = ""
        if answer.strip().lower() != "y":
            logger.info(f"User declined to run: {command}")
            return

        success, output, error = await self.executor(command, timeout=self.execution_timeout)
        if output:
            self.ui.append_output(output.rstrip("\n"), style_class='default')
        if not success:
            self.ui.append_output(f"Command error: {error}", style_class='error')
