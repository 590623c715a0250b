"""
Bounded-concurrency dispatch of publish calls.

boto3 is synchronous, so each SNS call runs in a worker thread of a pool sized
to `max_concurrency`; an `asyncio.Semaphore` caps how many batches are in
flight at once. Batches are independent and may finish in any order; their
outcomes are keyed by entry id, never by completion order.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from aws_lambda_powertools import Logger

from mypy_boto3_sns import SNSClient

from . import core
from .config import Settings
from .model import Batch, BatchOutcome, DraftEntry, FailedOutcome, PublishEventResult, WireEntry
from .offload import OffloadCoordinator

R = TypeVar("R")


class BatchDispatcher:
    def __init__(
        self,
        sns_client: SNSClient,
        offloader: OffloadCoordinator,
        logger: Logger,
        max_concurrency: Optional[int] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._sns = sns_client
        self._offloader = offloader
        self._logger = logger
        self.max_concurrency = max_concurrency or Settings.max_concurrency
        # The loop's default executor is capped at cpu_count + 4 workers, which
        # on a small Lambda is well below the configured ceiling.
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="sns-publish"
        )

    async def _call(self, func: Callable[..., R], **kwargs: Any) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(func, **kwargs))

    async def publish_single(self, topic_arn: str, draft: DraftEntry) -> PublishEventResult:
        """
        Publishes one entry with `sns.publish`, offloading it first if needed.

        Transport errors (botocore ClientError) propagate unchanged. A failed
        offload raises BlobStoreError since there is no per-entry result here.
        """
        wire = await self._offloader.offload(draft) if draft.exceeds_limit else draft.wire
        response = await self._call(self._sns.publish, TopicArn=topic_arn, **wire.to_request())
        return PublishEventResult(message_id=response["MessageId"], sequence_number=response.get("SequenceNumber"))

    async def dispatch(self, topic_arn: str, batches: Sequence[Batch]) -> List[BatchOutcome]:
        """
        Sends every batch, at most `max_concurrency` at a time.

        A call-level failure in any batch rejects the whole dispatch with the
        first such error, but only once every batch has finished; batches
        already sent are not rolled back.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(index: int, batch: Batch) -> BatchOutcome:
            async with semaphore:
                return await self._dispatch_batch(topic_arn, index, batch)

        tasks = [run(index, batch) for index, batch in enumerate(batches, start=1)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            if len(errors) > 1:
                self._logger.error(
                    "Several SNS publish batches failed.",
                    extra={"failed_batches": len(errors), "errors": [str(e) for e in errors]},
                )
            raise errors[0]
        return [r for r in results if isinstance(r, BatchOutcome)]

    async def _dispatch_batch(self, topic_arn: str, index: int, batch: Batch) -> BatchOutcome:
        oversized = [entry for entry in batch.entries if entry.exceeds_limit]
        resolved = await asyncio.gather(*(self._offloader.resolve(entry) for entry in oversized))
        replacements = {entry.id: result for entry, result in zip(oversized, resolved)}

        ready: List[WireEntry] = []
        offload_failures: List[FailedOutcome] = []
        for entry in batch.entries:
            result = replacements.get(entry.id, entry.wire) if entry.exceeds_limit else entry.wire
            if isinstance(result, FailedOutcome):
                offload_failures.append(result)
            else:
                ready.append(result)

        if not ready:
            self._logger.warning(
                "Every entry in the batch failed to offload; skipping publish.",
                extra={"batch": index, "failed": len(offload_failures)},
            )
            return BatchOutcome(failed=offload_failures)

        response = await self._call(
            self._sns.publish_batch,
            TopicArn=topic_arn,
            PublishBatchRequestEntries=[wire.to_request() for wire in ready],  # type: ignore[misc]
        )
        outcome = core.parse_batch_response(response)
        outcome.failed.extend(offload_failures)

        if outcome.failed:
            self._logger.warning(
                "Partial failure in SNS publish batch.",
                extra={"batch": index, "failed_entries": [f.to_dict() for f in outcome.failed]},
            )
        else:
            self._logger.info(f"Successfully published {len(outcome.success)} SNS messages in batch {index}.")
        return outcome
