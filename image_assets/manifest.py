"""Representation of container image assets and publish results.

An asset descriptor is read from the asset metadata written into a cloud
assembly by the synthesis step. Keys use the camelCase names of the assembly
format, for example:

```yaml
- id: MyStack:MyImage/ABC123
  packaging: container-image
  path: asset.0123456789abcdef
  sourceHash: 0123456789abcdef
  repositoryName: my-repo
  imageTag: 0123456789abcdef
  buildArgs:
    VERSION: "1.2"
```

Descriptors may be read from such a file with `read_assets`:

```python
from image_assets.manifest import read_assets

for asset in await read_assets(Path("cdk.out/assets.yaml")):
    print(f"Found asset {asset.id} with context {asset.build_context_path}")
```
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Optional

import aiofiles
import yaml
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import InvalidFieldValue, MissingField

from .exceptions import ConfigurationError, InputException

__all__ = [
    "read_assets",
    "AssetDescriptor",
    "LegacyAddressing",
    "DirectAddressing",
    "ParameterUpdate",
    "PublishResult",
]

_LOGGER = logging.getLogger(__name__)


CONTAINER_IMAGE_PACKAGING = "container-image"
ASSETS_KEY = "assets"


@dataclass(frozen=True)
class LegacyAddressing:
    """The image reference is handed to the stack through a parameter."""

    parameter_key: str
    """Key of the stack parameter that receives the image reference."""


@dataclass(frozen=True)
class DirectAddressing:
    """The stack references the image by a fixed repository and tag."""

    repository_name: str
    image_tag: str


Addressing = LegacyAddressing | DirectAddressing


@dataclass(frozen=True)
class AssetDescriptor(DataClassDictMixin):
    """A container image asset to build and publish."""

    id: str
    """Identifier of the asset within its stack."""

    build_context_path: str = field(metadata=field_options(alias="path"))
    """Docker build context, absolute or relative to the assembly directory."""

    source_hash: str = field(metadata=field_options(alias="sourceHash"))
    """Hash of the asset source contents."""

    packaging: str = CONTAINER_IMAGE_PACKAGING
    """Asset packaging type, only container images are supported."""

    build_args: dict[str, str] = field(
        metadata=field_options(alias="buildArgs"), default_factory=dict
    )
    """Build arguments passed verbatim to docker build."""

    target_stage: Optional[str] = field(
        metadata=field_options(alias="target"), default=None
    )
    """Target stage of a multi-stage Dockerfile."""

    dockerfile_path: Optional[str] = field(
        metadata=field_options(alias="file"), default=None
    )
    """Path of the Dockerfile when not the default one in the context."""

    repository_name: Optional[str] = field(
        metadata=field_options(alias="repositoryName"), default=None
    )
    """Explicit name of the target repository."""

    image_tag: Optional[str] = field(
        metadata=field_options(alias="imageTag"), default=None
    )
    """Explicit image tag."""

    image_name_parameter_key: Optional[str] = field(
        metadata=field_options(alias="imageNameParameter"), default=None
    )
    """Stack parameter key that receives the image reference (legacy apps)."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "AssetDescriptor":
        """Parse an AssetDescriptor from an asset metadata entry."""
        if not doc.get("id"):
            raise InputException(f"Invalid asset missing id: {doc}")
        if not doc.get("path"):
            raise InputException(f"Invalid asset missing path: {doc}")
        if not doc.get("sourceHash"):
            raise InputException(f"Invalid asset missing sourceHash: {doc}")
        if (
            packaging := doc.get("packaging", CONTAINER_IMAGE_PACKAGING)
        ) != CONTAINER_IMAGE_PACKAGING:
            raise InputException(
                f"Invalid asset packaging '{packaging}', expected "
                f"'{CONTAINER_IMAGE_PACKAGING}': {doc}"
            )
        try:
            return cls.from_dict(doc)
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid asset {doc['id']}: {err}") from err

    @property
    def is_immutable(self) -> bool:
        """True when the image is addressed by an explicit repository and tag."""
        return bool(self.repository_name and self.image_tag)

    @property
    def addressing(self) -> Addressing:
        """Return how the stack references the published image."""
        if self.image_name_parameter_key:
            return LegacyAddressing(parameter_key=self.image_name_parameter_key)
        if not self.repository_name or not self.image_tag:
            raise ConfigurationError(
                f"Asset {self.id}: 'repositoryName' and 'imageTag' are both "
                "required if 'imageNameParameter' is omitted"
            )
        return DirectAddressing(
            repository_name=self.repository_name, image_tag=self.image_tag
        )

    def __str__(self) -> str:
        """Render as a debug string."""
        return f"{self.id} ({self.build_context_path})"


@dataclass(frozen=True)
class ParameterUpdate(DataClassDictMixin):
    """A stack parameter value produced by publishing an asset."""

    key: str = field(metadata=field_options(alias="ParameterKey"))
    """Key of the stack parameter."""

    value: Optional[str] = field(
        metadata=field_options(alias="ParameterValue"), default=None
    )
    """The new parameter value."""

    use_previous_value: Optional[bool] = field(
        metadata=field_options(alias="UsePreviousValue"), default=None
    )
    """Keep the value from the previous deployment instead of a new value."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True)
class PublishResult:
    """The ordered parameter updates produced by publishing an asset.

    An empty result means the stack needs no parameter for the image.
    """

    parameters: list[ParameterUpdate] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "PublishResult":
        """Return a result with no parameter updates."""
        return cls()

    @classmethod
    def use_previous(cls, key: str | None) -> "PublishResult":
        """Return a result that keeps the previous value of the parameter."""
        if not key:
            return cls()
        return cls([ParameterUpdate(key=key, use_previous_value=True)])

    @classmethod
    def value(cls, key: str, value: str) -> "PublishResult":
        """Return a result that sets the parameter to a new value."""
        return cls([ParameterUpdate(key=key, value=value)])

    def to_parameters(self) -> list[dict[str, Any]]:
        """Return the parameter updates in the stack parameter format."""
        return [parameter.to_dict() for parameter in self.parameters]

    def __iter__(self) -> Iterator[ParameterUpdate]:
        return iter(self.parameters)

    def __len__(self) -> int:
        return len(self.parameters)


def parse_assets(content: str) -> list[AssetDescriptor]:
    """Parse container image assets from a YAML or JSON document.

    The document is either a list of asset entries or a mapping with an
    `assets` list. Entries with a packaging other than container-image are
    skipped.
    """
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"Unable to parse asset metadata: {err}") from err
    if isinstance(doc, dict):
        doc = doc.get(ASSETS_KEY)
    if not isinstance(doc, list):
        raise InputException(
            f"Expected a list of assets or a mapping with '{ASSETS_KEY}'"
        )
    assets = []
    for entry in doc:
        if not isinstance(entry, dict):
            raise InputException(f"Invalid asset entry: {entry}")
        packaging = entry.get("packaging", CONTAINER_IMAGE_PACKAGING)
        if packaging != CONTAINER_IMAGE_PACKAGING:
            _LOGGER.debug(
                "Skipping asset %s with packaging %s", entry.get("id"), packaging
            )
            continue
        assets.append(AssetDescriptor.parse_doc(entry))
    return assets


async def read_assets(assets_path: Path) -> list[AssetDescriptor]:
    """Return the container image assets in a serialized asset metadata file."""
    async with aiofiles.open(str(assets_path)) as assets_file:
        content = await assets_file.read()
    if not content:
        raise InputException(f"Asset metadata file {assets_path} is empty")
    return parse_assets(content)
