"""
Offload Coordinator: moves oversized payloads to S3 and rewrites their entries.
"""

from typing import List, Union

from aws_lambda_powertools import Logger

from . import core
from .errors import BlobStoreError
from .model import Destination, DraftEntry, FailedOutcome, WireEntry
from .parameter_store import ParameterStore
from .s3_uploader import S3Uploader


class OffloadCoordinator:
    def __init__(self, parameter_store: ParameterStore, uploader: S3Uploader, logger: Logger):
        self._parameter_store = parameter_store
        self._uploader = uploader
        self._logger = logger

    async def destinations(self) -> List[Destination]:
        """Resolves the (cached) destination list. Lookup errors propagate."""
        return await self._parameter_store.get_destinations()

    async def offload(self, draft: DraftEntry) -> WireEntry:
        """
        Uploads the full content of `draft` and returns the entry to publish instead.

        The returned entry's body holds the S3 location plus the fixed
        properties picked from the original content. Nothing else from the
        original content is carried over.

        Raises:
            ResourceDiscoveryError, ParameterReadError: The destination list
                could not be resolved. These are systemic and abort the call.
            BlobStoreError: No destination accepted the payload.
        """
        if not draft.exceeds_limit or not draft.content_path:
            return draft.wire

        destinations = await self.destinations()
        body = core.serialize_content(draft.content).encode("utf-8")

        self._logger.info(
            "Offloading oversized payload to S3.",
            extra={"entry_id": draft.id, "size": draft.size, "path": draft.content_path},
        )
        destination = await self._uploader.upload_with_fallback(destinations, draft.content_path, body)
        self._logger.info(
            "Payload offloaded.",
            extra={"entry_id": draft.id, "bucket": destination.bucket_name, "region": destination.region},
        )
        return core.offloaded_wire_entry(draft, destination)

    async def resolve(self, draft: DraftEntry) -> Union[WireEntry, FailedOutcome]:
        """
        Batch-mode variant of `offload`.

        A blob-store failure becomes a per-entry FailedOutcome so sibling
        entries and other batches still go out. Lookup errors still raise.
        """
        try:
            return await self.offload(draft)
        except BlobStoreError as e:
            return FailedOutcome(id=draft.id or "", code=e.code.value, message=e.message)
