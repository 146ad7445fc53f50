# tests/conftest.py
#
# Project-wide fixtures for pytest.

import sys
import os

import pytest

# Add the project root to the Python path so 'kai' and 'main' import without installation.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


@pytest.fixture
def base_config():
    """A minimal configuration mirroring config/default_config.json."""
    return {
        "ollama": {
            "api_url": "http://ollama.test/api/generate",
            "host": "http://ollama.test",
            "model_env_var": "OLLAMA_MODEL",
            "model_file": "model.txt",
            "request_timeout_seconds": 5
        },
        "server": {"name": "K8s AI Agent (KAI)", "version": "0.0.1", "host": "localhost", "port": 8080, "tool_name": "ask_model"},
        "client": {"endpoint": "http://localhost:8080/sse"},
        "session": {"exit_keywords": ["quit", "exit"], "track_short_namespace_flag": True},
        "execution": {"timeout_seconds": 5},
        "ui": {"history_file": None}
    }
