# kai/config_handler.py

import os
import sys
import json
import re
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "default_config.json"
USER_CONFIG_FILENAME = "user_config.json"

# Used when neither the environment nor the model file names a model.
DEFAULT_MODEL = "deepseek-r1"
DEFAULT_MODEL_ENV_VAR = "OLLAMA_MODEL"
DEFAULT_MODEL_FILE = "model.txt"

COMMENT_PATTERN = re.compile(r'//.*?$|/\*.*?\*/', re.DOTALL | re.MULTILINE)


def load_jsonc_file(filepath: str) -> Optional[Dict[str, Any]]:
    """Reads a KAI settings file, allowing // and /* */ comments.

    Returns the settings object, or None when the file is absent, unreadable,
    malformed, or holds something other than a JSON object.
    """
    if not os.path.exists(filepath):
        logger.info(f"No settings file at {filepath}")
        return None

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            parsed = json.loads(COMMENT_PATTERN.sub('', f.read()))
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in settings file {filepath}: {e}", exc_info=True)
        print(f"❌ Error: KAI settings file {filepath} has a syntax error: {e}", file=sys.stderr)
        return None
    except IOError as e:
        logger.error(f"Cannot read settings file {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Cannot read KAI settings file {filepath}.", file=sys.stderr)
        return None

    if not isinstance(parsed, dict):
        logger.error(f"Settings file {filepath} must hold a JSON object, got {type(parsed).__name__}.")
        return None
    return parsed


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Returns `base` with `override` laid over it; nested sections merge key by key."""
    merged = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_configuration(config_dir: str) -> Dict[str, Any]:
    """
    Builds the effective KAI settings from `config_dir`.

    default_config.json must exist and parse; user_config.json, when
    present, overrides individual keys such as `server.port` or
    `ollama.request_timeout_seconds`.

    Raises:
        FileNotFoundError: If default_config.json is missing or unusable.
    """
    defaults_path = os.path.join(config_dir, DEFAULT_CONFIG_FILENAME)
    overrides_path = os.path.join(config_dir, USER_CONFIG_FILENAME)

    config = load_jsonc_file(defaults_path)
    if config is None:
        error_msg = f"KAI cannot start: default settings missing or invalid at '{defaults_path}'."
        logger.critical(error_msg)
        raise FileNotFoundError(error_msg)
    logger.info(f"Default settings loaded from {defaults_path}")

    overrides = load_jsonc_file(overrides_path)
    if overrides:
        config = merge_configs(config, overrides)
        logger.info(f"User overrides applied from {overrides_path}: {sorted(overrides)}")
    return config


def _read_model_file(filepath: str) -> str:
    """Returns the trimmed contents of a single-line model file, or '' if unreadable."""
    if not os.path.isfile(filepath):
        return ""
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return f.read().strip()
    except IOError as e:
        logger.warning(f"Could not read model file {filepath}: {e}")
        return ""


def resolve_model_name(config: Dict[str, Any]) -> str:
    """
    Resolves the Ollama model identifier.

    Order: environment variable, then the single-line model file, then
    DEFAULT_MODEL. The first non-empty value wins.
    """
    ollama_config = config.get("ollama", {})
    env_var = ollama_config.get("model_env_var", DEFAULT_MODEL_ENV_VAR)

    model = os.environ.get(env_var, "").strip()
    if model:
        logger.debug(f"Model '{model}' taken from environment variable {env_var}.")
        return model

    model_file = ollama_config.get("model_file", DEFAULT_MODEL_FILE)
    model = _read_model_file(model_file)
    if model:
        logger.debug(f"Model '{model}' taken from model file {model_file}.")
        return model

    logger.debug(f"No model configured; falling back to default '{DEFAULT_MODEL}'.")
    return DEFAULT_MODEL
