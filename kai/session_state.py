# kai/session_state.py

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

NAMESPACE_DIRECTIVE = ":namespace"

# A flag only counts at the start of a token: "pod-n x" is not a namespace flag.
_LONG_FLAG_PATTERN = re.compile(r'(?:^|\s)--namespace(?:=|\s+)(\S+)')
_LONG_OR_SHORT_FLAG_PATTERN = re.compile(r'(?:^|\s)(?:--namespace(?:=|\s+)|-n\s+)(\S+)')


def extract_namespace(command: str, include_short_flag: bool = True) -> Optional[str]:
    """
    Returns the namespace named by the first namespace flag in `command`.

    Recognizes '--namespace <ns>', '--namespace=<ns>' and, when
    `include_short_flag` is set, '-n <ns>'. Returns None when no flag is
    present or the flag has no value.
    """
    pattern = _LONG_OR_SHORT_FLAG_PATTERN if include_short_flag else _LONG_FLAG_PATTERN
    match = pattern.search(command)
    if not match:
        return None
    return match.group(1)


class SessionState:
    """Per-session context carried between turns: the active Kubernetes namespace.

    One instance belongs to one interaction loop. It is never shared between
    sessions and never persisted.
    """

    def __init__(self, namespace: str = "", track_short_flag: bool = True):
        self.namespace = namespace or ""
        self.track_short_flag = track_short_flag

    def update_from_command(self, command: str) -> Optional[str]:
        """Adopts the namespace used by a suggested command.

        Returns the new namespace, or None if the command names none.
        """
        if not command:
            return None
        namespace = extract_namespace(command, include_short_flag=self.track_short_flag)
        if namespace is None:
            return None
        if namespace != self.namespace:
            logger.info(f"Session namespace changed from '{self.namespace}' to '{namespace}' (detected in command).")
        self.namespace = namespace
        return namespace

    @staticmethod
    def is_directive(line: str) -> bool:
        return line == NAMESPACE_DIRECTIVE or line.startswith(NAMESPACE_DIRECTIVE + " ")

    def apply_directive(self, line: str) -> bool:
        """Handles a ':namespace <value>' line.

        Returns True if the line was a directive (whether or not it changed
        anything). An empty value leaves the namespace untouched.
        """
        if not self.is_directive(line):
            return False
        value = line[len(NAMESPACE_DIRECTIVE):].strip()
        if value:
            logger.info(f"Session namespace set to '{value}' by user directive.")
            self.namespace = value
        return True
