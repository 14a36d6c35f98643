# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for client configuration loading."""

import asyncio
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from s3lite.client import S3Client
from s3lite.config import ClientConfig, ConfigError
from s3lite.credentials import EnvironmentProvider, StaticProvider
from s3lite.logging import SecretFilter
from s3lite.validation import MIN_PART_SIZE
from tests.fakes import RecordingHandler
from tests.fakes import make_client as _make_client


FULL_YAML = """\
endpoint: http://localhost:9000
region: eu-west-1
secure: "no"
virtual_host_style: true
user_agent: test-agent/1.0
timeout: 15
credentials:
  access_key: !env TEST_S3_ACCESS_KEY
  secret_key: !env TEST_S3_SECRET_KEY
multipart:
  part_size: 8388608
  concurrency: 4
"""


@pytest.fixture(autouse=True)
def _no_dotenv() -> Iterator[None]:
    """Keep a developer's .env out of config tests."""
    with patch("s3lite.config.load_dotenv_once"):
        yield


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "s3.yaml"
    path.write_text(content)
    return path


class TestFromYaml:
    """Tests for ClientConfig.from_yaml."""

    def test_full(self, tmp_path: Path) -> None:
        env = {"TEST_S3_ACCESS_KEY": "AKIA", "TEST_S3_SECRET_KEY": "s3cr3t"}
        with patch.dict("os.environ", env):
            config = ClientConfig.from_yaml(_write(tmp_path, FULL_YAML))

        assert config.endpoint == "http://localhost:9000"
        assert config.region == "eu-west-1"
        assert config.secure is False
        assert config.virtual_host_style is True
        assert config.user_agent == "test-agent/1.0"
        assert config.timeout_seconds == 15.0
        assert config.part_size == 8 * 1024 * 1024
        assert config.concurrency == 4
        assert config.access_key == "AKIA"
        assert config.secret_key == "s3cr3t"

    def test_unset_env_falls_back_to_environment_provider(
        self, tmp_path: Path
    ) -> None:
        with patch.dict("os.environ", {}, clear=True):
            config = ClientConfig.from_yaml(_write(tmp_path, FULL_YAML))
        assert config.access_key is None
        assert isinstance(config.credentials_provider(), EnvironmentProvider)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            ClientConfig.from_yaml(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            ClientConfig.from_yaml(_write(tmp_path, "- a\n- b\n"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            ClientConfig.from_yaml(_write(tmp_path, "endpoint: [unclosed\n"))

    def test_secret_registered_for_redaction(self, tmp_path: Path) -> None:
        env = {"TEST_S3_ACCESS_KEY": "AKIA", "TEST_S3_SECRET_KEY": "s3cr3t"}
        with patch.dict("os.environ", env):
            ClientConfig.from_yaml(_write(tmp_path, FULL_YAML))
        assert "s3cr3t" in SecretFilter._secrets


class TestFromDict:
    """Tests for ClientConfig.from_dict and validation."""

    def test_defaults(self) -> None:
        config = ClientConfig.from_dict({"endpoint": "s3.amazonaws.com"})
        assert config.region == "us-east-1"
        assert config.secure is True
        assert config.virtual_host_style is False
        assert config.part_size == MIN_PART_SIZE
        assert config.concurrency == 1
        assert config.timeout_seconds == 60.0

    def test_missing_endpoint(self) -> None:
        with pytest.raises(ConfigError, match="endpoint"):
            ClientConfig.from_dict({"region": "us-east-1"})

    def test_bad_bool(self) -> None:
        with pytest.raises(ConfigError, match="bool"):
            ClientConfig.from_dict({"endpoint": "h", "secure": "maybe"})

    def test_bad_int(self) -> None:
        with pytest.raises(ConfigError, match="int"):
            ClientConfig.from_dict(
                {"endpoint": "h", "multipart": {"concurrency": "many"}}
            )

    def test_part_size_too_small(self) -> None:
        with pytest.raises(ConfigError, match="Part size"):
            ClientConfig.from_dict(
                {"endpoint": "h", "multipart": {"part_size": 1024}}
            )

    def test_zero_concurrency(self) -> None:
        with pytest.raises(ConfigError, match="concurrency"):
            ClientConfig.from_dict(
                {"endpoint": "h", "multipart": {"concurrency": 0}}
            )

    def test_half_credentials(self) -> None:
        with pytest.raises(ConfigError, match="both"):
            ClientConfig.from_dict(
                {"endpoint": "h", "credentials": {"access_key": "AKIA"}}
            )

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ConfigError, match="'multipart'"):
            ClientConfig.from_dict({"endpoint": "h", "multipart": [1]})

    def test_static_provider(self) -> None:
        config = ClientConfig.from_dict(
            {
                "endpoint": "h",
                "credentials": {
                    "access_key": "AKIA",
                    "secret_key": "secret",
                    "session_token": "token",
                },
            }
        )
        provider = config.credentials_provider()
        assert isinstance(provider, StaticProvider)
        creds = asyncio.run(provider.fetch())
        assert creds.session_token == "token"


class TestClientFromConfig:
    """Tests for S3Client.from_config."""

    def test_settings_applied(self) -> None:
        config = ClientConfig.from_dict(
            {
                "endpoint": "http://localhost:9000",
                "region": "eu-west-1",
                "virtual_host_style": True,
                "user_agent": "agent/2",
                "credentials": {"access_key": "AKIA", "secret_key": "secret"},
                "multipart": {"part_size": 6291456, "concurrency": 2},
            }
        )
        handler = RecordingHandler()
        transport = _make_client(handler)._transport
        client = S3Client.from_config(config, transport=transport)

        assert client.region == "eu-west-1"
        assert client.endpoint.virtual_host_style
        assert client.part_size == 6291456
        assert client.concurrency == 2

        asyncio.run(client.executor("GET").bucket("bucket").send_ok())
        request = handler.last
        assert request.url.host == "bucket.localhost"
        assert request.headers["user-agent"] == "agent/2"
        assert "Credential=AKIA/" in request.headers["authorization"]
