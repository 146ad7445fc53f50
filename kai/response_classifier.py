# kai/response_classifier.py

import logging
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CMD_TAG = "[CMD]"
EXP_TAG = "[EXP]"
FULL_TAG = "[FULL]"
COMMAND_MARKER = "## Command:"
EXPLANATION_MARKER = "## Explanation:"


class ResponseKind(str, Enum):
    """Shape of a model answer, as announced by its leading tag."""
    COMMAND = "CMD"
    EXPLANATION = "EXP"
    FULL = "FULL"


class StructuredResponse(BaseModel):
    """A classified model answer; serialized as {"type", "command", "content"}.

    `classify` only produces the three known kinds. A decoded payload may
    carry any other tag, which is kept as a plain string so the client can
    report it instead of rejecting the whole answer.
    """
    type: Union[ResponseKind, str] = Field(union_mode="left_to_right")
    command: str = ""
    content: str = ""


def _split_full(remainder: str) -> StructuredResponse:
    if EXPLANATION_MARKER not in remainder:
        return StructuredResponse(type=ResponseKind.FULL, command=remainder.strip())

    command_part, explanation_part = remainder.split(EXPLANATION_MARKER, 1)
    command_part = command_part.strip()
    if command_part.startswith(COMMAND_MARKER):
        command_part = command_part[len(COMMAND_MARKER):]
    return StructuredResponse(
        type=ResponseKind.FULL,
        command=command_part.strip(),
        content=explanation_part.strip(),
    )


def classify(raw: str) -> StructuredResponse:
    """
    Classifies raw model output by its leading tag.

    The tag check is a literal prefix test on the untrimmed text. Output
    without a recognized tag is returned whole as the content of a FULL
    response, so the caller always has something to show.
    """
    if raw.startswith(CMD_TAG):
        return StructuredResponse(type=ResponseKind.COMMAND, command=raw[len(CMD_TAG):].strip())
    if raw.startswith(EXP_TAG):
        return StructuredResponse(type=ResponseKind.EXPLANATION, content=raw[len(EXP_TAG):].strip())
    if raw.startswith(FULL_TAG):
        return _split_full(raw[len(FULL_TAG):])

    logger.info("Model output carried no recognized tag; treating it as a FULL explanation.")
    return StructuredResponse(type=ResponseKind.FULL, content=raw)
