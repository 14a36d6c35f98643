# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client configuration.

Configuration is loaded from a YAML file with support for ``!env`` tags
that resolve values from environment variables::

    endpoint: https://play.min.io
    region: us-east-1
    virtual_host_style: false
    timeout: 30
    credentials:
      access_key: !env S3_ACCESS_KEY
      secret_key: !env S3_SECRET_KEY
    multipart:
      part_size: 8388608
      concurrency: 4

A ``.env`` file is loaded before the tags are resolved. When the
``credentials`` section is absent, credentials are read from the
environment at request time instead.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml

from s3lite.credentials import (
    CredentialProvider,
    EnvironmentProvider,
    StaticProvider,
)
from s3lite.dotenv_loader import load_dotenv_once
from s3lite.endpoint import DEFAULT_REGION
from s3lite.errors import S3LiteError
from s3lite.logging import SecretFilter
from s3lite.transport import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from s3lite.validation import MAX_PART_SIZE, MIN_PART_SIZE


logger = logging.getLogger(__name__)

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


class ConfigError(S3LiteError):
    """Raised for missing or invalid configuration."""


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _coerce_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is unset/empty.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name) or None
    if value is None:
        return None
    return str(value)


_MISSING = object()

T = TypeVar("T")


@overload
def _resolve(value: object, coerce: type[T], *, default: T) -> T: ...


@overload
def _resolve(value: object, coerce: type[T]) -> T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a
            literal already parsed by PyYAML).
        coerce: Target type (``str``, ``int``, ``float``, ``bool``).
        default: Default when value is absent.

    Returns:
        The resolved, coerced value, or None when absent without default.

    Raises:
        ConfigError: If the value cannot be coerced.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if isinstance(value, coerce) and not isinstance(value, bool):
            return value

    resolved = _raw_resolve(value)
    if resolved is None:
        if default is not _MISSING:
            return default
        return None

    if coerce is bool:
        return _coerce_bool(resolved)
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a YAML mapping")
    return section


# ---------------------------------------------------------------------------
# Client config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientConfig:
    """Settings for building an ``S3Client``.

    Attributes:
        endpoint: ``[http(s)://]host[:port]`` of the service.
        region: Region every request is signed for.
        secure: Use https when ``endpoint`` has no scheme.
        virtual_host_style: Address buckets as ``bucket.host``.
        user_agent: ``User-Agent`` header value.
        timeout_seconds: HTTP request timeout.
        part_size: Multipart part size in bytes.
        concurrency: Maximum parts in flight per multipart upload.
        access_key: Static access key, or None to use the environment.
        secret_key: Static secret key.
        session_token: Static session token.
    """

    endpoint: str
    region: str = DEFAULT_REGION
    secure: bool = True
    virtual_host_style: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    part_size: int = MIN_PART_SIZE
    concurrency: int = 1
    access_key: str | None = None
    secret_key: str | None = None
    session_token: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not self.endpoint:
            raise ConfigError("Config 'endpoint' is required")
        if not self.region:
            raise ConfigError("Config 'region' cannot be empty")
        if self.timeout_seconds <= 0:
            raise ConfigError(
                f"Timeout must be positive: {self.timeout_seconds}"
            )
        if not MIN_PART_SIZE <= self.part_size <= MAX_PART_SIZE:
            raise ConfigError(
                f"Part size must be between 5 MiB and 5 GiB: "
                f"{self.part_size}"
            )
        if self.concurrency < 1:
            raise ConfigError(
                f"Multipart concurrency must be >= 1: {self.concurrency}"
            )
        if bool(self.access_key) != bool(self.secret_key):
            raise ConfigError(
                "Config 'credentials' needs both access_key and secret_key"
            )

        SecretFilter.register_secret(self.secret_key)
        SecretFilter.register_secret(self.session_token)

    @classmethod
    def from_yaml(cls, config_path: Path | str) -> "ClientConfig":
        """Load configuration from a YAML file.

        Values tagged with ``!env VAR_NAME`` are resolved from the
        environment at load time.  A ``.env`` file is loaded first if
        present.

        Raises:
            ConfigError: If the file is missing or values are invalid.
        """
        load_dotenv_once()

        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            try:
                raw = yaml.load(f, Loader=_make_loader())
            except yaml.YAMLError as e:
                raise ConfigError(
                    f"Invalid YAML in {config_path}: {e}"
                ) from e

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls.from_dict(raw)
        logger.info(
            "Client config loaded from %s: endpoint=%s region=%s",
            config_path,
            config.endpoint,
            config.region,
        )
        return config

    @classmethod
    def from_dict(cls, raw: dict) -> "ClientConfig":
        """Build config from a parsed (but unresolved) YAML mapping."""
        credentials = _section(raw, "credentials")
        multipart = _section(raw, "multipart")

        endpoint = _resolve(raw.get("endpoint"), str)
        if not endpoint:
            raise ConfigError("Required config 'endpoint' is missing")

        return cls(
            endpoint=endpoint,
            region=_resolve(raw.get("region"), str, default=DEFAULT_REGION),
            secure=_resolve(raw.get("secure"), bool, default=True),
            virtual_host_style=_resolve(
                raw.get("virtual_host_style"), bool, default=False
            ),
            user_agent=_resolve(
                raw.get("user_agent"), str, default=DEFAULT_USER_AGENT
            ),
            timeout_seconds=_resolve(
                raw.get("timeout"), float, default=DEFAULT_TIMEOUT_SECONDS
            ),
            part_size=_resolve(
                multipart.get("part_size"), int, default=MIN_PART_SIZE
            ),
            concurrency=_resolve(
                multipart.get("concurrency"), int, default=1
            ),
            access_key=_resolve(credentials.get("access_key"), str),
            secret_key=_resolve(credentials.get("secret_key"), str),
            session_token=_resolve(credentials.get("session_token"), str),
        )

    def credentials_provider(self) -> CredentialProvider:
        """Provider for the configured credentials.

        Static keys when configured, otherwise the process environment.
        """
        if self.access_key and self.secret_key:
            return StaticProvider(
                self.access_key, self.secret_key, self.session_token
            )
        return EnvironmentProvider()
