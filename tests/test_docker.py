"""Tests for docker library."""

import pytest

from image_assets.docker import BuildOptions, Docker, select_repo_digest
from image_assets.exceptions import DockerException
from image_assets.registry import RegistryCredentials

from .conftest import RecordingRunner


@pytest.mark.parametrize(
    ("options", "expected"),
    [
        (
            BuildOptions(image_uri="uri:latest", context_path="/foo"),
            ["--tag", "uri:latest", "/foo"],
        ),
        (
            BuildOptions(
                image_uri="uri:latest",
                context_path="/foo",
                build_args={"z": "1", "a": "2=3"},
            ),
            [
                "--build-arg",
                "z=1",
                "--build-arg",
                "a=2=3",
                "--tag",
                "uri:latest",
                "/foo",
            ],
        ),
        (
            BuildOptions(
                image_uri="uri:tag",
                context_path="ctx",
                target="prod",
                file="ctx/Dockerfile.prod",
            ),
            [
                "--tag",
                "uri:tag",
                "ctx",
                "--target",
                "prod",
                "--file",
                "ctx/Dockerfile.prod",
            ],
        ),
    ],
    ids=["plain", "build-args", "target-and-file"],
)
def test_build_options(options: BuildOptions, expected: list[str]) -> None:
    """Test the docker build arguments for build options."""
    assert options.args == expected


@pytest.mark.parametrize(
    ("digests", "expected"),
    [
        (["otherrepo@sha256:aaa", "repoUri@sha256:bbb"], "repoUri@sha256:bbb"),
        (["repoUri@sha256:ccc", "repoUri@sha256:ddd"], "repoUri@sha256:ccc"),
        (["otherrepo@sha256:aaa", "repoUri:latest"], None),
        (["repoUri2@sha256:aaa"], None),
        ([], None),
    ],
)
def test_select_repo_digest(digests: list[str], expected: str | None) -> None:
    """Test selecting the digest for a repository."""
    assert select_repo_digest(digests, "repoUri") == expected


async def test_repo_digests(runner: RecordingRunner) -> None:
    """Test parsing the repository digests of an image."""
    runner.outputs["image"] = "a@sha256:1|b@sha256:2|"
    docker = Docker(runner=runner, docker_bin="podman")
    assert await docker.repo_digests("a:latest") == ["a@sha256:1", "b@sha256:2"]
    assert runner.args == [
        [
            "podman",
            "image",
            "inspect",
            "a:latest",
            "--format",
            "{{range .RepoDigests}}{{.}}|{{end}}",
        ]
    ]


async def test_repo_digests_empty(docker: Docker, runner: RecordingRunner) -> None:
    """Test an image without repository digests."""
    runner.outputs["image"] = ""
    assert await docker.repo_digests("a:latest") == []


async def test_login(docker: Docker, runner: RecordingRunner) -> None:
    """Test the docker login command marks the password as secret."""
    await docker.login(
        RegistryCredentials(username="user", password="pass", endpoint="registry")
    )
    (login,) = runner.commands
    assert login.cmd == [
        "docker",
        "login",
        "--username",
        "user",
        "--password",
        "pass",
        "registry",
    ]
    assert login.secrets == ("pass",)
    assert login.exc is DockerException
    assert str(login) == "docker login --username user --password *** registry"


async def test_build_and_push(docker: Docker, runner: RecordingRunner) -> None:
    """Test the docker build and push commands."""
    await docker.build(BuildOptions(image_uri="uri:latest", context_path="/foo"))
    await docker.push("uri:latest")
    assert runner.args == [
        ["docker", "build", "--tag", "uri:latest", "/foo"],
        ["docker", "push", "uri:latest"],
    ]


async def test_command_timeout(runner: RecordingRunner) -> None:
    """Test the docker command timeout is passed to each command."""
    docker = Docker(runner=runner, timeout=30.0)
    await docker.push("uri:latest")
    assert runner.commands[0].timeout == 30.0
