"""
Public entry points of the SNS publishing client.

This module wires the pieces together and exposes `SnsTrigger`, whose two
coroutines are what callers use:
  - `publish_event` sends one event with `sns.publish`.
  - `publish_events` formats, batches and sends many events with
    `sns.publish_batch`, offloading oversized payloads to S3 on the way.

Both raise only on systemic or validation problems (bad topic ARN, missing
tenant code when one is required, destination lookup failure, transport
errors). Per-entry problems are reported in the returned result.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Mapping, Optional, Sequence, Union

from aws_lambda_powertools import Logger

from . import clients, core
from .config import Settings
from .dispatcher import BatchDispatcher
from .model import Destination, Event, PublishEventResult, PublishEventsResult, SessionContext
from .offload import OffloadCoordinator
from .parameter_store import AsyncCache, ParameterStore
from .s3_uploader import S3Uploader

EventInput = Union[Event, Mapping[str, Any]]


class SnsTrigger:
    """
    Publishes events to SNS topics.

    Args:
        settings: Runtime settings. Read from the environment when omitted.
        aws_clients: Pre-built boto3 clients (tests pass moto-backed ones).
        session: Optional tenant context exposing `client_code`.
        arn_cache, destinations_cache: Caches for the destination lookup.
            The process-wide defaults are used when omitted.
        logger: A Powertools Logger to reuse; one is created otherwise.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        aws_clients: Optional[clients.AwsClients] = None,
        session: Optional[SessionContext] = None,
        arn_cache: Optional[AsyncCache[str]] = None,
        destinations_cache: Optional[AsyncCache[List[Destination]]] = None,
        logger: Optional[Logger] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.session = session
        self.logger = logger or Logger(service=self.settings.service_name, level=self.settings.log_level)

        aws = aws_clients or clients.get_boto_clients(ram_region=self.settings.ram_region)
        self.parameter_store = ParameterStore(
            aws.ram,
            aws.ssm,
            self.settings.storage_parameter_name,
            self.logger,
            arn_cache=arn_cache,
            destinations_cache=destinations_cache,
        )
        # Publishes and uploads share one pool sized to the concurrency ceiling.
        self.executor = ThreadPoolExecutor(
            max_workers=self.settings.max_concurrency, thread_name_prefix="sns-trigger"
        )
        self.uploader = S3Uploader(
            aws.sts,
            self.logger,
            role_session_name=self.settings.service_name,
            role_session_duration=self.settings.assume_role_duration_seconds,
            executor=self.executor,
        )
        self.offloader = OffloadCoordinator(self.parameter_store, self.uploader, self.logger)
        self.dispatcher = BatchDispatcher(
            aws.sns, self.offloader, self.logger, self.settings.max_concurrency, executor=self.executor
        )

    @property
    def client_code(self) -> Optional[str]:
        return getattr(self.session, "client_code", None) if self.session is not None else None

    async def publish_event(self, topic_arn: str, event: EventInput) -> PublishEventResult:
        """
        Publishes a single event.

        Raises:
            InvalidTopicArnError: Before any call is made.
            MissingTenantContextError: Oversized event without a tenant code,
                                       when the settings require one.
            ResourceDiscoveryError, ParameterReadError: Destination lookup failed.
            BlobStoreError: The oversized payload could not be stored anywhere.
            botocore.exceptions.ClientError: The publish call itself failed.
        """
        topic = core.resolve_topic(topic_arn)
        draft = core.format_event(event, topic.name, self.settings, client_code=self.client_code)
        return await self.dispatcher.publish_single(topic.arn, draft)

    async def publish_events(self, topic_arn: str, events: Sequence[EventInput]) -> PublishEventsResult:
        """
        Publishes many events using as few publish_batch calls as possible.

        Events get ids "1", "2", ... in input order; results refer to them by
        those ids. When any event needs offloading, the destination list is
        resolved before the first batch goes out, so a lookup failure rejects
        the call without anything having been published.
        """
        topic = core.resolve_topic(topic_arn)
        if not events:
            return PublishEventsResult()

        batches = core.partition_events(events, topic.name, self.settings, client_code=self.client_code)

        if any(entry.exceeds_limit for batch in batches for entry in batch.entries):
            await self.offloader.destinations()

        self.logger.info(
            "Publishing events to SNS.",
            extra={"topic": topic.name, "events": len(events), "batches": len(batches)},
        )
        outcomes = await self.dispatcher.dispatch(topic.arn, batches)
        result = core.aggregate_results(outcomes)

        if result.failed_count:
            self.logger.warning(
                "Some events could not be published.",
                extra={"topic": topic.name, "success_count": result.success_count, "failed_count": result.failed_count},
            )
        return result
