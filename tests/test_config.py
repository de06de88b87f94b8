"""Tests for config library."""

import pytest

from image_assets.config import PublishConfig
from image_assets.exceptions import InputException


def test_defaults() -> None:
    """Test the default configuration."""
    config = PublishConfig.from_env({})
    assert config == PublishConfig()
    assert config.docker_bin == "docker"
    assert config.default_tag == "latest"
    assert config.command_timeout is None


def test_from_env() -> None:
    """Test overriding the configuration from the environment."""
    config = PublishConfig.from_env(
        {
            "IMAGE_ASSETS_DOCKER": "/usr/local/bin/podman",
            "IMAGE_ASSETS_CONCURRENCY": "8",
            "IMAGE_ASSETS_COMMAND_TIMEOUT": "600",
        }
    )
    assert config.docker_bin == "/usr/local/bin/podman"
    assert config.concurrency == 8
    assert config.command_timeout == 600.0


def test_from_os_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the configuration reads the process environment by default."""
    monkeypatch.setenv("IMAGE_ASSETS_DOCKER", "finch")
    assert PublishConfig.from_env().docker_bin == "finch"


@pytest.mark.parametrize(
    ("env", "expected_error"),
    [
        ({"IMAGE_ASSETS_CONCURRENCY": "many"}, "expected an integer"),
        ({"IMAGE_ASSETS_CONCURRENCY": "0"}, "must be at least 1"),
        ({"IMAGE_ASSETS_COMMAND_TIMEOUT": "soon"}, "expected a number"),
    ],
)
def test_from_env_invalid(env: dict[str, str], expected_error: str) -> None:
    """Test invalid environment overrides."""
    with pytest.raises(InputException, match=expected_error):
        PublishConfig.from_env(env)


@pytest.mark.parametrize("concurrency", [0, -1])
def test_invalid_concurrency(concurrency: int) -> None:
    """Test a configuration that could never publish an asset."""
    with pytest.raises(InputException, match="must be at least 1"):
        PublishConfig(concurrency=concurrency)
