"""Quote engine configuration and settings."""

import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from loguru import logger

load_dotenv()

# Paths
PACKAGE_ROOT = Path(__file__).parent.parent
CONFIG_DIR = Path(__file__).parent
REFERENCE_DIR = PACKAGE_ROOT / "data" / "reference"
LOG_DIR = Path(os.getenv("QUOTE_ENGINE_LOG_DIR", Path.cwd() / "logs"))

DEFAULT_RULES_PATH = CONFIG_DIR / "pricing.yaml"
RULES_PATH = Path(os.getenv("QUOTE_ENGINE_RULES", DEFAULT_RULES_PATH))

LOG_LEVEL = os.getenv("QUOTE_ENGINE_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("QUOTE_ENGINE_LOG_FILE")


def load_rules_config(path: Path | None = None) -> dict:
    """Load pricing rules and the default service catalog from YAML."""
    config_path = Path(path) if path else RULES_PATH
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Install the stderr sink (and an optional rotating file sink) for CLI runs."""
    logger.remove()
    logger.add(sys.stderr, level=(level or LOG_LEVEL).upper())

    log_file = log_file or LOG_FILE
    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(LOG_DIR / log_file, level="DEBUG", rotation="10 MB", retention=5)
