"""Shared fixtures: fake SNS/RAM/SSM clients, settings and moto-backed S3."""

from typing import Any, Dict, List
from unittest.mock import MagicMock

import boto3
import pytest
from aws_lambda_powertools import Logger
from moto import mock_aws

from sns_trigger.app import SnsTrigger
from sns_trigger.clients import AwsClients
from sns_trigger.config import Settings
from sns_trigger.parameter_store import AsyncCache
from tests.fakes import PRIMARY_BUCKET, SECONDARY_BUCKET, FakeRAMClient, FakeSNSClient, FakeSSMClient


@pytest.fixture
def settings() -> Settings:
    return Settings(service_name="test-service")


@pytest.fixture
def logger() -> Logger:
    return Logger(service="sns-trigger-tests", level="DEBUG")


@pytest.fixture
def destinations_value() -> List[Dict[str, Any]]:
    return [
        {"bucketName": SECONDARY_BUCKET, "region": "us-east-1"},
        {"bucketName": PRIMARY_BUCKET, "region": "us-east-1", "default": True},
    ]


@pytest.fixture
def sns_client() -> FakeSNSClient:
    return FakeSNSClient()


@pytest.fixture
def ram_client() -> FakeRAMClient:
    return FakeRAMClient()


@pytest.fixture
def ssm_client(destinations_value: List[Dict[str, Any]]) -> FakeSSMClient:
    return FakeSSMClient(value=destinations_value)


@pytest.fixture
def aws_clients(sns_client: FakeSNSClient, ram_client: FakeRAMClient, ssm_client: FakeSSMClient) -> AwsClients:
    return AwsClients(sns=sns_client, ram=ram_client, ssm=ssm_client, sts=MagicMock())  # type: ignore[arg-type]


@pytest.fixture
def arn_cache() -> AsyncCache:
    return AsyncCache()


@pytest.fixture
def destinations_cache() -> AsyncCache:
    return AsyncCache()


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mocked AWS credentials so no real account can ever be reached."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("USE_MOTO", "true")


@pytest.fixture
def moto_aws(aws_credentials: None):
    with mock_aws():
        yield


@pytest.fixture
def s3(moto_aws: None):
    """A moto-backed S3 client. Tests create the buckets they need."""
    return boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def trigger(
    settings: Settings,
    aws_clients: AwsClients,
    arn_cache: AsyncCache,
    destinations_cache: AsyncCache,
    logger: Logger,
) -> SnsTrigger:
    """An SnsTrigger wired to the fake clients and its own, empty caches."""
    return SnsTrigger(
        settings=settings,
        aws_clients=aws_clients,
        arn_cache=arn_cache,
        destinations_cache=destinations_cache,
        logger=logger,
    )
