# kai/ollama_gateway.py

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
import ollama

from kai.config_handler import resolve_model_name
from kai.errors import InferenceError

# --- Module-specific logger ---
logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:11434/api/generate"
DEFAULT_HOST = "http://localhost:11434"
DEFAULT_REQUEST_TIMEOUT = 300


class FragmentDecoder:
    """Incrementally decodes a stream of concatenated JSON objects.

    Ollama streams one `{"response": "..."}` object per fragment. Objects may be
    newline separated or directly concatenated, and a network chunk may end in
    the middle of an object, so undecodable tails are kept until more data
    arrives or the stream ends.
    """

    def __init__(self):
        self._decoder = json.JSONDecoder()
        self._buffer = ""

    def feed(self, chunk: str) -> List[str]:
        """Adds a chunk of body text and returns the fragment texts completed by it."""
        self._buffer += chunk
        fragments = []
        while True:
            stripped = self._buffer.lstrip()
            if not stripped:
                self._buffer = ""
                break
            try:
                obj, end = self._decoder.raw_decode(stripped)
            except json.JSONDecodeError:
                # Possibly a partial object; wait for the next chunk.
                self._buffer = stripped
                break
            self._buffer = stripped[end:]
            fragments.append(self._fragment_text(obj))
        return fragments

    def close(self) -> None:
        """Signals end of stream. Raises InferenceError if undecodable data is left over."""
        leftover = self._buffer.strip()
        self._buffer = ""
        if leftover:
            raise InferenceError(f"failed to decode response: malformed or truncated JSON {leftover[:80]!r}")

    @staticmethod
    def _fragment_text(obj: Any) -> str:
        if not isinstance(obj, dict):
            raise InferenceError(f"failed to decode response: expected a JSON object, got {type(obj).__name__}")
        if obj.get("error"):
            raise InferenceError(f"ollama reported an error: {obj['error']}")
        text = obj.get("response", "")
        if not isinstance(text, str):
            raise InferenceError("failed to decode response: 'response' field is not a string")
        return text


class InferenceGateway:
    """Sends prompts to the Ollama generate endpoint and reassembles the streamed answer."""

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initializes the gateway.

        Args:
            config: The application configuration. Reads the 'ollama' section.
            transport: Optional httpx transport, used by tests to fake the backend.
        """
        ollama_config = config.get("ollama", {})
        self.config = config
        self.api_url = ollama_config.get("api_url", DEFAULT_API_URL)
        self.host = ollama_config.get("host", DEFAULT_HOST)
        self.timeout = ollama_config.get("request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT)
        self._transport = transport
        logger.info(f"InferenceGateway initialized for endpoint: {self.api_url}")

    @property
    def model(self) -> str:
        # Resolved per request so a changed model file or env var takes effect.
        return resolve_model_name(self.config)

    async def generate(self, prompt: str) -> str:
        """Sends `prompt` to the model and returns the concatenated streamed text.

        Raises:
            InferenceError: On connection failures, non-200 responses or
                undecodable fragments.
        """
        model = self.model
        payload = {"model": model, "prompt": prompt}
        logger.info(f"Requesting generation from model '{model}' ({len(prompt)} prompt chars).")

        decoder = FragmentDecoder()
        parts = []
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async with client.stream("POST", self.api_url, json=payload) as response:
                    if response.status_code != 200:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        logger.error(f"Ollama returned HTTP {response.status_code}: {body.strip()}")
                        raise InferenceError(f"ollama request failed: HTTP {response.status_code} {body.strip()}".rstrip())
                    async for chunk in response.aiter_text():
                        parts.extend(decoder.feed(chunk))
        except httpx.HTTPError as e:
            logger.error(f"Ollama request to {self.api_url} failed: {e}", exc_info=True)
            raise InferenceError(f"ollama request failed: {e}") from e

        decoder.close()
        raw = "".join(parts)
        logger.debug(f"Received {len(parts)} fragments, {len(raw)} chars: {raw!r}")
        return raw

    async def is_server_running(self) -> bool:
        """
        Checks if the Ollama server is running and responsive by trying to list models.
        """
        client = ollama.Client(host=self.host)
        try:
            await asyncio.to_thread(client.list)
            logger.info("Ollama server is running and responsive (list() successful).")
            return True
        except (ollama.RequestError, ollama.ResponseError, ConnectionError, httpx.HTTPError) as e:
            logger.info(f"Ollama server appears to be down or unreachable: {e}")
            return False
