"""Library for publishing container image assets to a registry.

Publishing an asset builds the image from its local build context, pushes
it to the registry repository for the asset and returns the stack parameter
values that point the stack at the pushed image:

```python
from image_assets.publisher import publish

result = await publish(Path("cdk.out"), asset, registry)
for parameter in result.to_parameters():
    print(f"Parameter {parameter['ParameterKey']}")
```

Assets are addressed in one of two ways. Apps written before explicit image
tags existed pass the image through a stack parameter (`imageNameParameter`),
whose value is the digest reference of the pushed image. Newer apps name the
repository and tag explicitly and need no parameter; since such tags are
derived from the source contents the image is treated as immutable and is not
rebuilt if the tag is already in the registry.
"""

import asyncio
from collections.abc import Iterable
import logging
import os
from pathlib import Path

from .config import PublishConfig
from .context import PublishState, PublishTrace, trace_context
from .docker import BuildOptions, Docker, select_repo_digest
from .exceptions import (
    CommandNotFoundException,
    DockerNotInstalledError,
    InputException,
    IntegrityError,
)
from .manifest import (
    Addressing,
    AssetDescriptor,
    LegacyAddressing,
    PublishResult,
)
from .registry import RegistryRepository, RepositoryHandle

__all__ = [
    "AssetPublisher",
    "publish",
    "publish_all",
]

_LOGGER = logging.getLogger(__name__)


def resolve_context_path(assembly_dir: Path | str, path: str) -> str:
    """Return the build context path, relative paths are in the assembly."""
    if os.path.isabs(path):
        return path
    return str(Path(assembly_dir) / path)


class AssetPublisher:
    """Builds and pushes container image assets to a registry."""

    def __init__(
        self,
        registry: RegistryRepository,
        docker: Docker | None = None,
        config: PublishConfig | None = None,
    ) -> None:
        """Initialize AssetPublisher."""
        self._config = config or PublishConfig.from_env()
        self._registry = registry
        self._docker = docker or Docker(
            docker_bin=self._config.docker_bin,
            timeout=self._config.command_timeout,
        )

    async def publish(
        self, assembly_dir: Path | str, asset: AssetDescriptor, reuse: bool = False
    ) -> PublishResult:
        """Publish the asset and return the resulting stack parameters.

        When `reuse` is set the image from the previous deployment is kept
        and neither the registry nor docker are contacted.
        """
        with trace_context(asset.id) as trace:
            addressing = asset.addressing
            trace.advance(PublishState.VALIDATED)

            if reuse:
                trace.advance(PublishState.REUSE_SHORT_CIRCUIT)
                if isinstance(addressing, LegacyAddressing):
                    return PublishResult.use_previous(addressing.parameter_key)
                return PublishResult.empty()

            context_path = resolve_context_path(
                assembly_dir, asset.build_context_path
            )
            _LOGGER.debug("Preparing Docker image asset: %s", context_path)
            try:
                return await self._publish(trace, asset, addressing, context_path)
            except CommandNotFoundException as err:
                if err.executable != self._docker.docker_bin:
                    raise
                raise DockerNotInstalledError() from err

    async def _publish(
        self,
        trace: PublishTrace,
        asset: AssetDescriptor,
        addressing: Addressing,
        context_path: str,
    ) -> PublishResult:
        repository = await self._registry.resolve(asset)
        trace.advance(PublishState.REPOSITORY_RESOLVED)

        if asset.is_immutable:
            _LOGGER.debug(
                "Checking if %s:%s already exists",
                asset.repository_name,
                asset.image_tag,
            )
            if await self._registry.image_exists(
                asset.repository_name, asset.image_tag  # type: ignore[arg-type]
            ):
                _LOGGER.debug("Image already exists, skipping")
                trace.advance(PublishState.SKIPPED_EXISTING)
                return PublishResult.empty()

        tag = asset.image_tag or self._config.default_tag
        image_uri = f"{repository.repository_uri}:{tag}"

        await self._docker.build(
            BuildOptions(
                image_uri=image_uri,
                context_path=context_path,
                build_args=asset.build_args,
                target=asset.target_stage,
                file=asset.dockerfile_path,
            )
        )
        trace.advance(PublishState.BUILT)

        credentials = await self._registry.credentials()
        await self._docker.login(credentials)
        trace.advance(PublishState.AUTHENTICATED)

        _LOGGER.info(
            "Pushing Docker image for %s; this may take a while", context_path
        )
        await self._docker.push(image_uri)
        _LOGGER.debug("Docker image for %s pushed", context_path)
        trace.advance(PublishState.PUSHED)

        result = PublishResult.empty()
        if isinstance(addressing, LegacyAddressing):
            result = await self._digest_result(addressing, repository, image_uri)
        trace.advance(PublishState.RESULT_DERIVED)
        return result

    async def _digest_result(
        self,
        addressing: LegacyAddressing,
        repository: RepositoryHandle,
        image_uri: str,
    ) -> PublishResult:
        """Return the digest reference of the pushed image as the parameter."""
        repo_digests = await self._docker.repo_digests(image_uri)
        repo_digest = select_repo_digest(repo_digests, repository.repository_uri)
        if repo_digest is None:
            raise IntegrityError(repository.repository_uri, "|".join(repo_digests))
        value = repo_digest.replace(
            repository.repository_uri, repository.repository_name, 1
        )
        return PublishResult.value(addressing.parameter_key, value)


async def publish(
    assembly_dir: Path | str,
    asset: AssetDescriptor,
    registry: RegistryRepository,
    reuse: bool = False,
    docker: Docker | None = None,
    config: PublishConfig | None = None,
) -> PublishResult:
    """Build and push a container image asset, returning its stack parameters."""
    return await AssetPublisher(registry, docker=docker, config=config).publish(
        assembly_dir, asset, reuse=reuse
    )


async def publish_all(
    assembly_dir: Path | str,
    assets: Iterable[AssetDescriptor],
    registry: RegistryRepository,
    reuse: bool = False,
    docker: Docker | None = None,
    config: PublishConfig | None = None,
) -> dict[str, PublishResult]:
    """Publish independent assets concurrently, returning results by asset id.

    The first failure is raised once all started publishes have settled;
    images pushed by other assets are left in the registry.
    """
    config = config or PublishConfig.from_env()
    assets = list(assets)
    ids = [asset.id for asset in assets]
    if len(set(ids)) != len(ids):
        raise InputException(f"Duplicate asset ids in {ids}")

    publisher = AssetPublisher(registry, docker=docker, config=config)
    sem = asyncio.Semaphore(config.concurrency)

    async def _publish_with_sem(asset: AssetDescriptor) -> PublishResult:
        async with sem:
            return await publisher.publish(assembly_dir, asset, reuse=reuse)

    results = await asyncio.gather(
        *[_publish_with_sem(asset) for asset in assets], return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return dict(zip(ids, results))  # type: ignore[arg-type]
