"""Interface to the container registry that receives published images.

A registry implementation owns the repository lifecycle: creating the
repository if it is absent, applying its lifecycle and image scanning
policies, and issuing short lived credentials for docker login. The
publisher only needs the narrow interface below.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import hashlib

from .manifest import AssetDescriptor

__all__ = [
    "RepositoryHandle",
    "RegistryCredentials",
    "RegistryRepository",
    "default_repository_name",
]

REPOSITORY_NAME_PREFIX = "cdk-assets"


def default_repository_name(asset_id: str) -> str:
    """Return the repository name for an asset without an explicit one.

    The name only depends on the asset id, so every deployment of the same
    asset publishes to the same repository.
    """
    digest = hashlib.sha256(asset_id.encode("utf-8")).hexdigest()
    return f"{REPOSITORY_NAME_PREFIX}-{digest[:8]}"


@dataclass(frozen=True)
class RepositoryHandle:
    """A registry repository resolved for a single publish."""

    repository_uri: str
    """Full URI of the repository, e.g. 1234.dkr.ecr.us-east-1.amazonaws.com/name."""

    repository_name: str
    """Short name of the repository within the registry."""


@dataclass(frozen=True)
class RegistryCredentials:
    """Short lived credentials for docker login."""

    username: str
    password: str = field(repr=False)
    endpoint: str


class RegistryRepository(ABC):
    """A container registry that can host image asset repositories."""

    def repository_name(self, asset: AssetDescriptor) -> str:
        """Return the name of the repository that receives the asset."""
        return asset.repository_name or default_repository_name(asset.id)

    @abstractmethod
    async def resolve(self, asset: AssetDescriptor) -> RepositoryHandle:
        """Return the repository for the asset, creating it if needed."""

    @abstractmethod
    async def image_exists(self, repository_name: str, tag: str) -> bool:
        """Return True if the repository already has an image with the tag."""

    @abstractmethod
    async def credentials(self) -> RegistryCredentials:
        """Return credentials for logging in to the registry."""
