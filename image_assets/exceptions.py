"""Exceptions related to image-assets."""

__all__ = [
    "ImageAssetException",
    "InputException",
    "ConfigurationError",
    "CommandException",
    "CommandNotFoundException",
    "DockerException",
    "DockerNotInstalledError",
    "IntegrityError",
]


class ImageAssetException(Exception):
    """Generic base exception used for this library."""


class InputException(ImageAssetException):
    """Raised when the asset metadata is not formatted as expected."""


class ConfigurationError(InputException):
    """Raised when an asset has no usable addressing mode.

    An asset needs either an image name parameter, or both an explicit
    repository name and image tag.
    """


class CommandException(ImageAssetException):
    """Raised when there is a failure running a subcommand."""


class CommandNotFoundException(CommandException):
    """Raised when the executable for a subcommand does not exist."""

    def __init__(self, executable: str) -> None:
        super().__init__(f"Executable '{executable}' was not found")
        self.executable = executable


class DockerException(CommandException):
    """Raised when there is a failure running a docker command."""


class DockerNotInstalledError(ImageAssetException, EnvironmentError):
    """Raised when docker is not available on the host."""

    def __init__(self) -> None:
        super().__init__(
            "Error building Docker image asset; you need to have Docker installed "
            "in order to be able to build image assets. Please install Docker and "
            "try again."
        )


class IntegrityError(ImageAssetException):
    """Raised when a pushed image has no digest for the target repository."""

    def __init__(self, repository_uri: str, repo_digests: str) -> None:
        super().__init__(
            "Unable to identify repository digest (none starts with "
            f"{repository_uri}@sha256:) in:\n{repo_digests}"
        )
        self.repository_uri = repository_uri
        self.repo_digests = repo_digests
