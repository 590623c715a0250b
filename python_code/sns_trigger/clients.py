"""
A factory module for creating and providing boto3 clients.

This module is the core of the Dependency Injection (DI) pattern for the
package. It allows `SnsTrigger` to receive either real AWS clients or mocked
clients during testing, based on the presence of an environment variable.
This makes the publishing logic fully testable without making real AWS calls.
"""

import logging
import os
from typing import NamedTuple, Optional

import boto3
import botocore.config

from mypy_boto3_ram import RAMClient
from mypy_boto3_sns import SNSClient
from mypy_boto3_ssm import SSMClient
from mypy_boto3_sts import STSClient

logger = logging.getLogger(__name__)

# A shared, robust retry configuration for boto3 clients that need to be
# resilient to transient network or server-side errors. This is also used by
# the per-bucket S3 clients created in s3_uploader.py.
BOTO_CONFIG_RETRYABLE = botocore.config.Config(
    retries={"max_attempts": 5, "mode": "adaptive"}
)


class AwsClients(NamedTuple):
    sns: SNSClient
    ram: RAMClient
    ssm: SSMClient
    sts: STSClient


def get_boto_clients(ram_region: Optional[str] = None) -> AwsClients:
    """
    Returns the AWS service clients the publisher needs.

    This factory provides the core mechanism for dependency injection. It inspects
    the environment for a `USE_MOTO` flag. If present, it's assumed that `moto`
    is active and will intercept the `boto3` calls to return mocked clients.
    Otherwise, it creates real AWS clients.

    Args:
        ram_region: Region for the RAM and SSM clients. The shared storage
                    parameter lives in a fixed region, independent of where
                    the code runs.

    Returns:
        An AwsClients tuple of (sns, ram, ssm, sts).
    """
    aws_region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
    if not aws_region:
        logger.warning("AWS_REGION not set, boto3 will attempt to resolve it.")

    if os.environ.get("USE_MOTO"):
        logger.info("MOTO ENABLED: Returning mocked AWS clients.")

    sns_client: SNSClient = boto3.client("sns", region_name=aws_region, config=BOTO_CONFIG_RETRYABLE)
    ram_client: RAMClient = boto3.client("ram", region_name=ram_region or aws_region)
    ssm_client: SSMClient = boto3.client("ssm", region_name=ram_region or aws_region)
    sts_client: STSClient = boto3.client("sts", region_name=aws_region)

    return AwsClients(sns=sns_client, ram=ram_client, ssm=ssm_client, sts=sts_client)
