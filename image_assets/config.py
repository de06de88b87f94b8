"""Configuration objects for image-assets."""

from dataclasses import dataclass
import os
from typing import Any

from .exceptions import InputException

DOCKER_BIN = "docker"

# Tag used when an asset has no explicit image tag. Apps synthesized before
# explicit tags existed always pushed and referenced this tag.
DEFAULT_IMAGE_TAG = "latest"

DOCKER_BIN_ENV = "IMAGE_ASSETS_DOCKER"
CONCURRENCY_ENV = "IMAGE_ASSETS_CONCURRENCY"
COMMAND_TIMEOUT_ENV = "IMAGE_ASSETS_COMMAND_TIMEOUT"


@dataclass
class PublishConfig:
    """Configuration for publishing container image assets."""

    docker_bin: str = DOCKER_BIN
    """Name or path of the docker compatible executable."""

    default_tag: str = DEFAULT_IMAGE_TAG
    """Tag to use for assets without an explicit image tag."""

    concurrency: int = 4
    """Maximum number of assets published at once by publish_all."""

    command_timeout: float | None = None
    """Timeout in seconds for each docker command, None for no limit."""

    def __post_init__(self) -> None:
        """Validate the configuration values."""
        if self.concurrency < 1:
            raise InputException(
                f"Invalid concurrency '{self.concurrency}', must be at least 1"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "PublishConfig":
        """Build a configuration from environment variable overrides."""
        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        if docker_bin := env.get(DOCKER_BIN_ENV):
            overrides["docker_bin"] = docker_bin
        if concurrency := env.get(CONCURRENCY_ENV):
            try:
                overrides["concurrency"] = int(concurrency)
            except ValueError as err:
                raise InputException(
                    f"Invalid {CONCURRENCY_ENV} '{concurrency}', expected an integer"
                ) from err
        if timeout := env.get(COMMAND_TIMEOUT_ENV):
            try:
                overrides["command_timeout"] = float(timeout)
            except ValueError as err:
                raise InputException(
                    f"Invalid {COMMAND_TIMEOUT_ENV} '{timeout}', expected a number"
                ) from err
        return cls(**overrides)
