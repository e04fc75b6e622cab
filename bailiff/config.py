"""Configuration for the Bailiff service.

Two sources feed the service: a YAML file describing the trusted
repository and the authorization policy, and environment variables
carrying secrets.

Usage
-----
Load and validate the file configuration:

>>> config = load_config("bailiff.yaml")
>>> config.repo_slug
'ethereum-optimism/optimism'

Read secrets from the environment:

>>> env = EnvConfig.from_env()

"""

from __future__ import annotations

import dataclasses as dc
import os
import re
import typing as typ
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from bailiff.errors import ConfigError

YAML_VERSION = (1, 2)

SHA_GROUP_NAME = "sha"

DEFAULT_LISTEN_ADDR = "0.0.0.0:8080"  # noqa: S104 - bind all interfaces for container
DEFAULT_TRIGGER_PATTERN = r"(?m)^/ci authorize (?P<sha>[a-f0-9]+)$"
DEFAULT_STATUS_NAME = "bailiff"
DEFAULT_REFRESH_INTERVAL_S = 60.0
DEFAULT_GREETING_TEMPLATE = (
    "Hello! Thanks for your contribution. Someone on our team will be with "
    "you shortly to review your changes and authorize them to run in CI.\n\n"
    "Additional changes will need to be authorized again."
)


class ConfigFile(msgspec.Struct, kw_only=True, forbid_unknown_fields=True):
    """Raw values read from the YAML configuration file."""

    listen_addr: str = ""
    admin_teams: list[str] = msgspec.field(default_factory=list)
    org: str = ""
    repo: str = ""
    trigger_pattern: str = ""
    greeting_template: str = ""
    status_name: str = ""
    membership_refresh_interval_s: float | None = None


@dc.dataclass(frozen=True, slots=True)
class BailiffConfig:
    """Validated policy and repository configuration.

    Attributes
    ----------
    listen_addr
        ``host:port`` the HTTP server binds to.
    admin_teams
        Slugs of the teams whose members may authorize CI runs.
    org
        Owner of the trusted repository.
    repo
        Name of the trusted repository.
    trigger_regex
        Compiled trigger pattern; defines the named group ``sha``.
    greeting_template
        Greeting posted to new contributors.
    status_name
        Context name of the commit status published on success.
    membership_refresh_interval_s
        Seconds between team membership refreshes.

    """

    org: str
    repo: str
    admin_teams: tuple[str, ...]
    trigger_regex: re.Pattern[str]
    listen_addr: str = DEFAULT_LISTEN_ADDR
    greeting_template: str = DEFAULT_GREETING_TEMPLATE
    status_name: str = DEFAULT_STATUS_NAME
    membership_refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S

    @property
    def repo_slug(self) -> str:
        """Return the trusted repository as ``org/repo``."""
        return f"{self.org}/{self.repo}"

    @property
    def repo_ssh_url(self) -> str:
        """Return the SSH clone URL of the trusted repository."""
        return f"git@github.com:{self.org}/{self.repo}.git"

    @property
    def listen_host_port(self) -> tuple[str, str]:
        """Split ``listen_addr`` into host and port strings."""
        host, sep, port = self.listen_addr.rpartition(":")
        if not sep or not host:
            msg = f"listen address must be host:port, got {self.listen_addr!r}"
            raise ConfigError(msg)
        return host, port


def compile_trigger_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a trigger pattern and ensure it captures the ``sha`` group.

    Raises
    ------
    ConfigError
        If the pattern does not compile or lacks the named group.

    """
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        msg = f"error compiling trigger pattern: {exc}"
        raise ConfigError(msg) from exc
    if SHA_GROUP_NAME not in regex.groupindex:
        msg = f"trigger pattern must define a named group {SHA_GROUP_NAME!r}"
        raise ConfigError(msg)
    return regex


def check_config(raw: ConfigFile) -> BailiffConfig:
    """Apply defaults to *raw* values and validate them.

    Raises
    ------
    ConfigError
        If a required value is missing or a value is invalid.

    """
    if not raw.admin_teams:
        msg = "must define at least one admin team"
        raise ConfigError(msg)
    if not raw.org:
        raise ConfigError.missing("the organization")
    if not raw.repo:
        raise ConfigError.missing("the repository")

    interval = raw.membership_refresh_interval_s
    if interval is None:
        interval = DEFAULT_REFRESH_INTERVAL_S
    elif interval <= 0:
        msg = f"membership refresh interval must be positive, got: {interval}"
        raise ConfigError(msg)

    return BailiffConfig(
        org=raw.org,
        repo=raw.repo,
        admin_teams=tuple(raw.admin_teams),
        trigger_regex=compile_trigger_pattern(
            raw.trigger_pattern or DEFAULT_TRIGGER_PATTERN
        ),
        listen_addr=raw.listen_addr or DEFAULT_LISTEN_ADDR,
        greeting_template=raw.greeting_template or DEFAULT_GREETING_TEMPLATE,
        status_name=raw.status_name or DEFAULT_STATUS_NAME,
        membership_refresh_interval_s=interval,
    )


def load_config(path: Path | str) -> BailiffConfig:
    """Parse a YAML configuration file and validate it in one step."""
    return check_config(read_config(path))


def read_config(path: Path | str) -> ConfigFile:
    """Parse a YAML configuration file without applying defaults."""
    yaml = _yaml()
    path_obj = Path(path)

    try:
        loaded = yaml.load(path_obj.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"error opening config file: {exc}"
        raise ConfigError(msg) from exc
    except YAMLError as exc:
        msg = f"error decoding config file: {exc}"
        raise ConfigError(msg) from exc

    if loaded is None:
        msg = f"config file {path_obj} is empty"
        raise ConfigError(msg)

    try:
        return msgspec.convert(loaded, type=ConfigFile)
    except msgspec.ValidationError as exc:
        msg = f"error decoding config file: {exc}"
        raise ConfigError(msg) from exc


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml


@dc.dataclass(frozen=True, slots=True)
class EnvConfig:
    """Secrets supplied through the environment.

    Attributes
    ----------
    webhook_secret
        Shared secret used to validate incoming webhooks.
    github_token
        Token used to call the GitHub API.
    private_key_file
        Path to the SSH key used to clone and push the trusted repository.

    """

    webhook_secret: str
    github_token: str
    private_key_file: str

    def __post_init__(self) -> None:
        """Reject blank values."""
        if not self.webhook_secret:
            raise ConfigError.missing("the webhook secret")
        if not self.github_token:
            raise ConfigError.missing("the GitHub token")
        if not self.private_key_file:
            raise ConfigError.missing("the private key file")

    @classmethod
    def from_env(cls, environ: typ.Mapping[str, str] | None = None) -> EnvConfig:
        """Create configuration from environment variables.

        Reads ``BAILIFF_WEBHOOK_SECRET``, ``BAILIFF_GITHUB_TOKEN``, and
        ``BAILIFF_PRIVATE_KEY_FILE``.

        Raises
        ------
        ConfigError
            If any of the variables is unset or blank.

        """
        env = os.environ if environ is None else environ
        return cls(
            webhook_secret=env.get("BAILIFF_WEBHOOK_SECRET", "").strip(),
            github_token=env.get("BAILIFF_GITHUB_TOKEN", "").strip(),
            private_key_file=env.get("BAILIFF_PRIVATE_KEY_FILE", "").strip(),
        )


__all__ = [
    "DEFAULT_GREETING_TEMPLATE",
    "DEFAULT_TRIGGER_PATTERN",
    "SHA_GROUP_NAME",
    "BailiffConfig",
    "ConfigFile",
    "EnvConfig",
    "check_config",
    "compile_trigger_pattern",
    "load_config",
    "read_config",
]
