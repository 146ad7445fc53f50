# kai/ui_manager.py
import logging
import os
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.shortcuts import print_formatted_text
from prompt_toolkit.styles import Style

logger = logging.getLogger(__name__)

STYLE = Style.from_dict({
    'default': '',
    'welcome': 'bold #86c07c', 'info': '#61afef',
    'success': '#98c379', 'error': '#e06c75',
    'warning': '#d19a66', 'prompt': '#56b6c2',
    'context': '#56b6c2',
    'command-header': 'bold #98c379', 'command': '#abb2bf',
    'explanation-header': 'bold #e5c07b', 'explanation': '#abb2bf',
    'confirm-prompt': 'bold #d19a66',
})


class UIManager:
    """Line-oriented terminal UI built on prompt_toolkit.

    Input goes through a PromptSession (with optional file-backed line
    history); output is printed as styled text. Every line shown to the user
    is also written to the log.
    """

    def __init__(self, history_path: Optional[str] = None):
        self.history_path = history_path
        self.style = STYLE
        self._session = None
        logger.debug("UIManager initialized.")

    def _get_session(self) -> PromptSession:
        # Created on first use so that output-only callers never touch the terminal.
        if self._session is None:
            if self.history_path:
                history_dir = os.path.dirname(self.history_path)
                if history_dir:
                    os.makedirs(history_dir, exist_ok=True)
                history = FileHistory(self.history_path)
            else:
                history = InMemoryHistory()
            self._session = PromptSession(history=history)
        return self._session

    def append_output(self, text: str, style_class: str = 'default'):
        """Prints `text` using the given style class."""
        logger.info(f"UI_OUTPUT: {text.rstrip()}")
        print_formatted_text(FormattedText([(f"class:{style_class}", text)]), style=self.style)

    async def prompt_input(self, message: str, style_class: str = 'prompt') -> str:
        """Reads one line of input. Raises EOFError/KeyboardInterrupt when input ends."""
        session = self._get_session()
        return await session.prompt_async(FormattedText([(f"class:{style_class}", message)]), style=self.style)
