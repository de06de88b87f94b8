"""Library for running the docker commands that publish an image asset.

This wraps the `docker` command line tool for building, pushing and
inspecting images:
```python
from image_assets.docker import BuildOptions, Docker

docker = Docker()
await docker.build(BuildOptions(image_uri="repo:latest", context_path="/src"))
await docker.login(credentials)
await docker.push("repo:latest")
digests = await docker.repo_digests("repo:latest")
```
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging

from .command import Command, CommandRunner, SubprocessRunner
from .config import DOCKER_BIN
from .exceptions import DockerException
from .registry import RegistryCredentials

__all__ = [
    "BuildOptions",
    "Docker",
    "select_repo_digest",
]

_LOGGER = logging.getLogger(__name__)


DIGEST_SEPARATOR = "|"
REPO_DIGESTS_FORMAT = "{{range .RepoDigests}}{{.}}|{{end}}"


def digest_prefix(repository_uri: str) -> str:
    """Return the prefix of digest references that belong to the repository."""
    return f"{repository_uri}@sha256:"


def select_repo_digest(repo_digests: list[str], repository_uri: str) -> str | None:
    """Return the digest reference pushed to the repository, if any.

    An image may carry digests for several repositories, only a digest for
    this exact repository identifies the pushed image.
    """
    prefix = digest_prefix(repository_uri)
    return next(
        (digest for digest in repo_digests if digest.startswith(prefix)), None
    )


@dataclass
class BuildOptions:
    """Options for a docker build of an image asset."""

    image_uri: str
    """Tag applied to the built image, as <repository uri>:<tag>."""

    context_path: str
    """Build context directory."""

    build_args: Mapping[str, str] = field(default_factory=dict)
    """Values for --build-arg, in the order they are passed."""

    target: str | None = None
    """Value of the --target flag."""

    file: str | None = None
    """Value of the --file flag."""

    @property
    def args(self) -> list[str]:
        """Docker build CLI arguments built from the options."""
        args: list[str] = []
        for key, value in self.build_args.items():
            args.extend(["--build-arg", f"{key}={value}"])
        args.extend(["--tag", self.image_uri, self.context_path])
        if self.target:
            args.extend(["--target", self.target])
        if self.file:
            args.extend(["--file", self.file])
        return args


class Docker:
    """Library for issuing docker commands."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        docker_bin: str = DOCKER_BIN,
        timeout: float | None = None,
    ) -> None:
        """Initialize Docker."""
        self._runner = runner or SubprocessRunner()
        self._docker_bin = docker_bin
        self._timeout = timeout

    @property
    def docker_bin(self) -> str:
        """Name or path of the docker executable."""
        return self._docker_bin

    def _command(self, args: list[str], secrets: tuple[str, ...] = ()) -> Command:
        return Command(
            [self._docker_bin, *args],
            exc=DockerException,
            secrets=secrets,
            timeout=self._timeout,
        )

    async def build(self, options: BuildOptions) -> None:
        """Build and tag an image."""
        await self._runner.run(self._command(["build", *options.args]))

    async def login(self, credentials: RegistryCredentials) -> None:
        """Log in to a registry."""
        _LOGGER.debug(
            "Logging in to %s as %s", credentials.endpoint, credentials.username
        )
        await self._runner.run(
            self._command(
                [
                    "login",
                    "--username",
                    credentials.username,
                    "--password",
                    credentials.password,
                    credentials.endpoint,
                ],
                secrets=(credentials.password,),
            )
        )

    async def push(self, image_uri: str) -> None:
        """Push a tagged image."""
        await self._runner.run(self._command(["push", image_uri]))

    async def repo_digests(self, image_uri: str) -> list[str]:
        """Return the repository digest references of a local image."""
        out = await self._runner.run(
            self._command(
                ["image", "inspect", image_uri, "--format", REPO_DIGESTS_FORMAT]
            )
        )
        return [digest for digest in out.strip().split(DIGEST_SEPARATOR) if digest]
