"""
Troubleshooter Configuration

Handles environment configuration and startup validation.
"""

import logging
import os
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


# Server configuration
HOST = os.getenv("TROUBLESHOOTER_HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "10000"))

# LLM endpoint
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Storage locations
SETTINGS_PATH = Path(os.getenv("SETTINGS_PATH", "/data/settings.json"))
SCRIPTS_DIR = Path(os.getenv("SCRIPTS_DIR", "/data/scripts"))

# Playbook catalog, defaults to the one bundled with the package
DEFAULT_PLAYBOOKS_PATH = Path(__file__).parent / "data" / "playbooks.json"
PLAYBOOKS_PATH = Path(os.getenv("PLAYBOOKS_PATH", str(DEFAULT_PLAYBOOKS_PATH)))

# Browser origins allowed to call the API
DEFAULT_ALLOWED_ORIGINS = "https://elspaniard97.github.io,http://localhost:5500"
ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS).split(",")
    if origin.strip()
]

# Seconds to wait before answering a failed login
LOGIN_FAILURE_DELAY = float(os.getenv("LOGIN_FAILURE_DELAY", "0.5"))

REQUIRED_ENV_VARS = (
    "OPENAI_API_KEY",
    "JWT_SECRET",
    "ADMIN_USERNAME",
    "ADMIN_PASSWORD_HASH",
)


def require_env(name: str) -> str:
    """
    Read a required environment variable.

    Secrets are read on each call so rotating them does not need a reimport.

    Raises:
        RuntimeError: If the variable is unset or empty
    """
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def validate_environment() -> None:
    """
    Check every required variable and log the outcome.

    Raises:
        RuntimeError: If any required variable is missing
    """
    logger.info("Validating environment variables...")
    missing = []
    for name in REQUIRED_ENV_VARS:
        if os.getenv(name):
            logger.info(f"✓ {name} is set")
            continue
        logger.error(f"✗ {name} is missing")
        if name == "ADMIN_PASSWORD_HASH":
            logger.error(
                "To generate a password hash, run: "
                "python -c \"import bcrypt; print(bcrypt.hashpw(b'your-password', bcrypt.gensalt()).decode())\""
            )
        missing.append(name)

    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
