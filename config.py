"""Configuration settings for the hzcli flashcard manager."""

import os
import sys
from pathlib import Path

# Base paths
PROJECT_ROOT = Path(__file__).parent


def get_config_dir() -> Path:
    """Resolve the per-user configuration directory.

    Returns:
        $HZCLI_HOME if set, %APPDATA%/hzcli on Windows, ~/.hzcli elsewhere
    """
    override = os.environ.get("HZCLI_HOME")
    if override:
        return Path(override)
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home())) / "hzcli"
    return Path.home() / ".hzcli"


CONFIG_DIR = get_config_dir()
STORE_PATH = CONFIG_DIR / "store.json"
DECKS_DIR = CONFIG_DIR / "decks"
LOGS_DIR = CONFIG_DIR / "logs"
LOG_FILE = "hzcli.log"

# Starter decks shipped with the package
BASE_DECKS_DIR = PROJECT_ROOT / "hzcli" / "base_decks"

# Deck settings
DEFAULT_DECK_NAME = "default"
DEFAULT_DECK_DESCRIPTION = "Default Deck"
DECK_FILE_SUFFIX = ".json"
IMPORT_STAGING_SUFFIX = "-import-staging"

# Word confidence levels
LEVEL_UNSET = -1
LEVEL_MIN = 0
LEVEL_MAX = 10

# LLM settings
LLM_API_URL = "https://api.openai.com/v1/chat/completions"
LLM_API_KEY_ENV = "OPENAI_API_KEY"
LLM_MODEL = "gpt-4.1-nano"
LLM_TEMPERATURE = 0.7
LLM_MAX_TOKENS = 400
LLM_TIMEOUT = 60  # seconds

# Quiz settings
DEFAULT_QUIZ_QUESTIONS = 10
