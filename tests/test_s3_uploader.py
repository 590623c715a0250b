"""Tests for S3 uploads with destination fallback, run against moto."""

from unittest.mock import MagicMock

import boto3
import pytest
from aws_lambda_powertools import Logger

from sns_trigger.errors import BlobStoreError, ErrorCode
from sns_trigger.model import Destination
from sns_trigger.s3_uploader import S3Uploader, order_destinations
from tests.fakes import PRIMARY_BUCKET, SECONDARY_BUCKET, client_error, read_object

KEY = "acme/test-service/MyTopic/2024/03/07/ABC.json"
BODY = b'{"foo":"bar"}'

PRIMARY = Destination(bucket_name=PRIMARY_BUCKET, region="us-east-1", default=True)
SECONDARY = Destination(bucket_name=SECONDARY_BUCKET, region="us-east-1")


@pytest.fixture
def uploader(moto_aws: None, logger: Logger) -> S3Uploader:
    return S3Uploader(boto3.client("sts", region_name="us-east-1"), logger, role_session_name="test-service")


def test_default_destination_goes_first():
    other = Destination(bucket_name="other", region="eu-west-1")
    assert order_destinations([SECONDARY, other, PRIMARY]) == [PRIMARY, SECONDARY, other]
    assert order_destinations([SECONDARY, other]) == [SECONDARY, other]


async def test_uploads_to_default_destination(s3, uploader: S3Uploader):
    s3.create_bucket(Bucket=PRIMARY_BUCKET)
    s3.create_bucket(Bucket=SECONDARY_BUCKET)

    destination = await uploader.upload_with_fallback([SECONDARY, PRIMARY], KEY, BODY)

    assert destination == PRIMARY
    assert read_object(s3, PRIMARY_BUCKET, KEY) == {"foo": "bar"}
    assert s3.list_objects_v2(Bucket=SECONDARY_BUCKET).get("KeyCount") == 0


async def test_falls_back_when_default_destination_fails(s3, uploader: S3Uploader):
    s3.create_bucket(Bucket=SECONDARY_BUCKET)

    destination = await uploader.upload_with_fallback([PRIMARY, SECONDARY], KEY, BODY)

    assert destination == SECONDARY
    assert read_object(s3, SECONDARY_BUCKET, KEY) == {"foo": "bar"}


async def test_all_destinations_failing_raises_blob_store_error(s3, uploader: S3Uploader):
    with pytest.raises(BlobStoreError) as exc_info:
        await uploader.upload_with_fallback([PRIMARY, SECONDARY], KEY, BODY)

    assert exc_info.value.code is ErrorCode.S3_ERROR


async def test_no_destinations_raises_blob_store_error(uploader: S3Uploader):
    with pytest.raises(BlobStoreError):
        await uploader.upload_with_fallback([], KEY, BODY)


async def test_upload_to_bucket_returns_none_on_failure(s3, uploader: S3Uploader):
    assert await uploader.upload_to_bucket(PRIMARY, KEY, BODY) is None


async def test_assumes_destination_role(s3, uploader: S3Uploader):
    s3.create_bucket(Bucket=PRIMARY_BUCKET)
    destination = Destination(
        bucket_name=PRIMARY_BUCKET,
        region="us-east-1",
        default=True,
        role_arn="arn:aws:iam::123456789012:role/LambdaRemoteStorage",
    )

    assert await uploader.upload_to_bucket(destination, KEY, BODY) is not None
    assert read_object(s3, PRIMARY_BUCKET, KEY) == {"foo": "bar"}
    assert uploader.get_s3_client(destination) is uploader.get_s3_client(destination)


async def test_role_that_cannot_be_assumed_falls_back(s3, logger: Logger):
    s3.create_bucket(Bucket=PRIMARY_BUCKET)
    s3.create_bucket(Bucket=SECONDARY_BUCKET)
    sts = MagicMock()
    sts.assume_role.side_effect = client_error("AccessDenied", "AssumeRole")
    uploader = S3Uploader(sts, logger, role_session_name="test-service", role_session_duration=900)
    locked = Destination(
        bucket_name=PRIMARY_BUCKET, region="us-east-1", default=True, role_arn="arn:aws:iam::123456789012:role/Locked"
    )

    destination = await uploader.upload_with_fallback([locked, SECONDARY], KEY, BODY)

    assert destination == SECONDARY
    sts.assume_role.assert_called_once_with(
        RoleArn="arn:aws:iam::123456789012:role/Locked", RoleSessionName="test-service", DurationSeconds=900
    )
