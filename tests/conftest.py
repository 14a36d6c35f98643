# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures."""

from collections.abc import Iterator

import pytest

from s3lite.dotenv_loader import reset_dotenv_state
from s3lite.logging import SecretFilter


@pytest.fixture(autouse=True)
def _clear_secrets() -> Iterator[None]:
    """Keep registered secrets from leaking between tests."""
    SecretFilter.clear_secrets()
    yield
    SecretFilter.clear_secrets()


@pytest.fixture(autouse=True)
def _reset_dotenv() -> Iterator[None]:
    """Let every test start with an unloaded ``.env``."""
    reset_dotenv_state()
    yield
    reset_dotenv_state()
