# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Idempotent ``.env`` loading for configuration and credential lookup."""

import logging
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

_dotenv_loaded = False


def load_dotenv_once(env_path: Path | None = None) -> None:
    """Load a ``.env`` file once per process.

    Existing environment variables are never overridden.

    Args:
        env_path: Explicit path to a .env file. If None or missing,
            python-dotenv searches upward from the current directory.
    """
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    if env_path and env_path.exists():
        load_dotenv(env_path)
        logger.debug("Loaded .env from %s", env_path)
    else:
        load_dotenv()
        logger.debug("Loaded .env from current directory")
    _dotenv_loaded = True


def reset_dotenv_state() -> None:
    """Reset the dotenv loaded state. For testing only."""
    global _dotenv_loaded
    _dotenv_loaded = False
