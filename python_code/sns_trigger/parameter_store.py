"""
Cached lookup of the offload destination list.

The list of S3 buckets that may receive oversized payloads lives in an SSM
parameter owned by another account and shared through AWS Resource Access
Manager. Resolving it takes two calls:

  1. RAM `list_resources` to find the ARN of the shared parameter.
  2. SSM `get_parameter` on that ARN to read its JSON value.

Both results are cached for the life of the process. The caches are plain
objects so `SnsTrigger` can be handed fresh ones (e.g. in tests) instead of
the process-wide defaults.
"""

import asyncio
import json
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from mypy_boto3_ram import RAMClient
from mypy_boto3_ssm import SSMClient

from .errors import ParameterReadError, ResourceDiscoveryError
from .model import Destination

T = TypeVar("T")


class AsyncCache(Generic[T]):
    """
    A single-value cache with get-or-populate semantics.

    Concurrent callers that arrive while the value is still being loaded share
    the same in-flight task rather than each issuing their own call. A failed
    load is not cached, so the next caller tries again.
    """

    def __init__(self) -> None:
        self._value: Optional[T] = None
        self._loaded = False
        self._in_flight: Optional["asyncio.Future[T]"] = None
        # Bumped by invalidate(); a load started under an older generation is stale.
        self._generation = 0

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get_or_populate(self, loader: Callable[[], Awaitable[T]]) -> T:
        if self._loaded:
            return self._value  # type: ignore[return-value]

        if self._in_flight is None or self._in_flight.get_loop() is not asyncio.get_running_loop():
            self._in_flight = asyncio.ensure_future(self._load(loader, self._generation))
        return await asyncio.shield(self._in_flight)

    async def _load(self, loader: Callable[[], Awaitable[T]], generation: int) -> T:
        try:
            value = await loader()
        finally:
            if generation == self._generation:
                self._in_flight = None
        # Callers already waiting still get the value, but it is not stored.
        if generation == self._generation:
            self._value = value
            self._loaded = True
        return value

    def invalidate(self) -> None:
        self._generation += 1
        self._value = None
        self._loaded = False
        self._in_flight = None


# Process-wide defaults, shared by every SnsTrigger that is not given its own.
DEFAULT_ARN_CACHE: AsyncCache[str] = AsyncCache()
DEFAULT_DESTINATIONS_CACHE: AsyncCache[List[Destination]] = AsyncCache()


class ParameterStore:
    """Resolves (and caches) the destination list from RAM and SSM."""

    def __init__(
        self,
        ram_client: RAMClient,
        ssm_client: SSMClient,
        parameter_name: str,
        logger: Logger,
        arn_cache: Optional[AsyncCache[str]] = None,
        destinations_cache: Optional[AsyncCache[List[Destination]]] = None,
    ):
        self._ram = ram_client
        self._ssm = ssm_client
        self.parameter_name = parameter_name
        self._logger = logger
        self._arn_cache = arn_cache if arn_cache is not None else DEFAULT_ARN_CACHE
        self._destinations_cache = (
            destinations_cache if destinations_cache is not None else DEFAULT_DESTINATIONS_CACHE
        )

    def clear_cache(self) -> None:
        self._arn_cache.invalidate()
        self._destinations_cache.invalidate()

    async def get_destinations(self) -> List[Destination]:
        """
        Returns the destination list, resolving it on first use.

        Raises:
            ResourceDiscoveryError: The shared parameter could not be found in RAM.
            ParameterReadError: The parameter could not be read or parsed.
        """
        return await self._destinations_cache.get_or_populate(self._read_destinations)

    async def get_parameter_arn(self) -> str:
        return await self._arn_cache.get_or_populate(self._discover_parameter_arn)

    async def _discover_parameter_arn(self) -> str:
        try:
            arns = await asyncio.to_thread(self._list_shared_resource_arns)
        except (ClientError, BotoCoreError) as e:
            self._logger.error("RAM list_resources failed.", extra={"error": str(e)})
            raise ResourceDiscoveryError(f"Resource Access Manager Error: {e}") from e

        matching = [arn for arn in arns if self.parameter_name in arn]
        if not matching:
            self._logger.error(
                "No shared resource matches the storage parameter.",
                extra={"parameter_name": self.parameter_name, "shared_resources": len(arns)},
            )
            raise ResourceDiscoveryError(
                f"Resource Access Manager Error: Unable to find resources with parameter "
                f"{self.parameter_name} in the ARN"
            )

        self._logger.info("Resolved storage parameter ARN.", extra={"parameter_arn": matching[0]})
        return matching[0]

    def _list_shared_resource_arns(self) -> List[str]:
        arns: List[str] = []
        kwargs = {"resourceOwner": "OTHER-ACCOUNTS"}
        while True:
            response = self._ram.list_resources(**kwargs)  # type: ignore[arg-type]
            arns.extend(resource["arn"] for resource in response.get("resources", []) if "arn" in resource)
            next_token = response.get("nextToken")
            if not next_token:
                return arns
            kwargs["nextToken"] = next_token

    async def _read_destinations(self) -> List[Destination]:
        parameter_arn = await self.get_parameter_arn()

        try:
            response = await asyncio.to_thread(
                self._ssm.get_parameter, Name=parameter_arn, WithDecryption=True
            )
            raw = json.loads(response["Parameter"]["Value"])
            destinations = [Destination.from_dict(item) for item in raw]
        except (ClientError, BotoCoreError, KeyError, TypeError, ValueError) as e:
            self._logger.error("Could not read storage parameter.", extra={"parameter_arn": parameter_arn, "error": str(e)})
            raise ParameterReadError(f"Unable to get parameter with arn {parameter_arn} - {e}") from e

        if not destinations:
            raise ParameterReadError(f"Parameter with arn {parameter_arn} lists no destinations")

        self._logger.info("Loaded offload destinations.", extra={"destinations": len(destinations)})
        return destinations
