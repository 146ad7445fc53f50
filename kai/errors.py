# kai/errors.py

class KaiError(Exception):
    """Base class for all recoverable KAI errors."""
    pass


class InferenceError(KaiError):
    """Raised when the Ollama backend cannot be reached or its stream cannot be decoded."""
    pass


class ToolCallError(InferenceError):
    """Raised on the client side when the tool server answers with an error result."""
    pass


class MalformedResponseError(KaiError):
    """Raised when a tool payload is not a valid structured response.

    The undecodable payload is kept in `raw` so it can be shown for debugging.
    """

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class EmptyArgumentsError(KaiError):
    """Raised when a required tool argument is missing."""
    pass
