"""Test fixtures for image-assets."""

from collections.abc import Callable

import pytest

from image_assets.command import Command, CommandRunner
from image_assets.docker import Docker
from image_assets.exceptions import CommandNotFoundException
from image_assets.manifest import AssetDescriptor
from image_assets.registry import (
    RegistryCredentials,
    RegistryRepository,
    RepositoryHandle,
)

REPOSITORY_URI = "1234.dkr.ecr.us-east-1.amazonaws.com/name"
REPOSITORY_NAME = "name"
PASSWORD = "s3cr3t-t0ken"


class FakeRegistry(RegistryRepository):
    """A registry that records calls and holds a set of existing images."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.existing: set[tuple[str, str]] = set()
        self.resolved: list[AssetDescriptor] = []

    async def resolve(self, asset: AssetDescriptor) -> RepositoryHandle:
        self.calls.append("resolve")
        self.resolved.append(asset)
        return RepositoryHandle(
            repository_uri=REPOSITORY_URI, repository_name=REPOSITORY_NAME
        )

    async def image_exists(self, repository_name: str, tag: str) -> bool:
        self.calls.append("image_exists")
        return (repository_name, tag) in self.existing

    async def credentials(self) -> RegistryCredentials:
        self.calls.append("credentials")
        return RegistryCredentials(
            username="AWS", password=PASSWORD, endpoint="https://1234.dkr.ecr"
        )


class RecordingRunner(CommandRunner):
    """A command runner that records commands instead of running them.

    Output for a docker subcommand may be set in `outputs`, and a subcommand
    may be made to fail by setting a callable in `failures`.
    """

    def __init__(self) -> None:
        self.commands: list[Command] = []
        self.outputs: dict[str, str] = {}
        self.failures: dict[str, Callable[[Command], Exception]] = {}

    @property
    def args(self) -> list[list[str]]:
        """The argument vectors of all commands run."""
        return [cmd.cmd for cmd in self.commands]

    @property
    def subcommands(self) -> list[str]:
        """The docker subcommands run, in order."""
        return [cmd.cmd[1] for cmd in self.commands]

    async def run(self, cmd: Command) -> str:
        self.commands.append(cmd)
        if failure := self.failures.get(cmd.cmd[1]):
            raise failure(cmd)
        return self.outputs.get(cmd.cmd[1], "")


def missing_executable(cmd: Command) -> Exception:
    """Return the error raised when the executable does not exist."""
    return CommandNotFoundException(cmd.cmd[0])


@pytest.fixture(name="registry")
def registry_fixture() -> FakeRegistry:
    """Fixture for a fake registry."""
    return FakeRegistry()


@pytest.fixture(name="runner")
def runner_fixture() -> RecordingRunner:
    """Fixture for a runner that records docker commands."""
    runner = RecordingRunner()
    runner.outputs["image"] = (
        f"otherrepo@sha256:aaa|{REPOSITORY_URI}@sha256:bbb|"
    )
    return runner


@pytest.fixture(name="docker")
def docker_fixture(runner: RecordingRunner) -> Docker:
    """Fixture for a Docker that uses the recording runner."""
    return Docker(runner=runner)
