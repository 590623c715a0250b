"""
Uploads offloaded payloads to S3, falling back across destinations.

Each destination may name an IAM role to assume before writing; the resulting
S3 clients are cached until shortly before their credentials expire, so warm
Lambda invocations do not call STS for every oversized payload.
"""

import asyncio
import functools
from concurrent.futures import Executor
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from mypy_boto3_s3 import S3Client
from mypy_boto3_sts import STSClient

from .clients import BOTO_CONFIG_RETRYABLE
from .errors import BlobStoreError, ErrorCode, SnsTriggerError
from .model import Destination

# Refresh assumed credentials this long before they actually expire.
CREDENTIALS_EXPIRY_MARGIN = timedelta(minutes=2)


def order_destinations(destinations: Sequence[Destination]) -> List[Destination]:
    """The destination flagged `default` first, then the rest in list order."""
    defaults = [d for d in destinations if d.default]
    if not defaults:
        return list(destinations)
    primary = defaults[0]
    return [primary] + [d for d in destinations if d is not primary]


class S3Uploader:
    def __init__(
        self,
        sts_client: STSClient,
        logger: Logger,
        role_session_name: str,
        role_session_duration: int = 1800,
        executor: Optional[Executor] = None,
    ):
        self._sts = sts_client
        self._logger = logger
        self.role_session_name = role_session_name
        self.role_session_duration = role_session_duration
        # None runs uploads on the event loop's default executor.
        self.executor = executor
        self._clients: Dict[Tuple[Optional[str], str], Tuple[S3Client, datetime]] = {}

    def get_s3_client(self, destination: Destination) -> S3Client:
        """
        Returns an S3 client able to write to `destination`, using a cache.

        Raises:
            SnsTriggerError: With ASSUME_ROLE_ERROR if the destination's role
                             cannot be assumed.
        """
        key = (destination.role_arn, destination.region)
        now = datetime.now(timezone.utc)
        cached = self._clients.get(key)
        if cached and now < cached[1] - CREDENTIALS_EXPIRY_MARGIN:
            return cached[0]

        if not destination.role_arn:
            client: S3Client = boto3.client("s3", region_name=destination.region, config=BOTO_CONFIG_RETRYABLE)
            self._clients[key] = (client, datetime.max.replace(tzinfo=timezone.utc))
            return client

        try:
            assumed = self._sts.assume_role(
                RoleArn=destination.role_arn,
                RoleSessionName=self.role_session_name,
                DurationSeconds=self.role_session_duration,
            )
        except (ClientError, BotoCoreError) as e:
            self._logger.warning(
                "Could not assume role for S3 upload.", extra={"role_arn": destination.role_arn, "error": str(e)}
            )
            raise SnsTriggerError(
                f"Could not assume role {destination.role_arn}: {e}", ErrorCode.ASSUME_ROLE_ERROR
            ) from e

        credentials = assumed["Credentials"]
        client = boto3.client(
            "s3",
            region_name=destination.region,
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            config=BOTO_CONFIG_RETRYABLE,
        )
        self._clients[key] = (client, credentials["Expiration"])
        return client

    def _put_object(self, destination: Destination, key: str, body: bytes) -> Dict[str, Any]:
        client = self.get_s3_client(destination)
        return dict(client.put_object(Bucket=destination.bucket_name, Key=key, Body=body))

    async def upload_to_bucket(self, destination: Destination, key: str, body: bytes) -> Optional[Dict[str, Any]]:
        """
        Uploads `body` to one destination.

        Returns:
            The put_object response, or None if the upload failed. Failures are
            logged, not raised, so the caller can move on to the next bucket.
        """
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                self.executor, functools.partial(self._put_object, destination, key, body)
            )
        except (ClientError, BotoCoreError, SnsTriggerError) as e:
            self._logger.warning(
                f"Error uploading to bucket {destination.bucket_name} in region {destination.region}",
                extra={"bucket": destination.bucket_name, "region": destination.region, "key": key, "error": str(e)},
            )
            return None

    async def upload_with_fallback(self, destinations: Sequence[Destination], key: str, body: bytes) -> Destination:
        """
        Tries each destination in turn until one accepts the upload.

        Returns:
            The destination that now holds the payload.

        Raises:
            BlobStoreError: If the list is empty or every destination failed.
        """
        for destination in order_destinations(destinations):
            if await self.upload_to_bucket(destination, key, body) is not None:
                return destination

        self._logger.error(
            "Failed to upload to every destination.",
            extra={"key": key, "buckets": [d.bucket_name for d in destinations]},
        )
        raise BlobStoreError(f"Failed to upload {key} to any of {len(destinations)} destination(s)")
