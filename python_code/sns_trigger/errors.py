"""
Error taxonomy for the SNS publishing client.

Every error raised by this package is an `SnsTriggerError` carrying a closed
`ErrorCode`. The same codes are used in `FailedOutcome.code` when an error is
recovered as a per-entry failure instead of being raised.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    MISSING_CLIENT_CODE = "MISSING_CLIENT_CODE"
    INVALID_SNS_ARN = "INVALID_SNS_ARN"
    ASSUME_ROLE_ERROR = "ASSUME_ROLE_ERROR"
    RAM_ERROR = "RAM_ERROR"
    SSM_ERROR = "SSM_ERROR"
    S3_ERROR = "S3_ERROR"


class SnsTriggerError(Exception):
    """Base class. `code` tells callers which part of the pipeline failed."""

    code: ErrorCode

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidTopicArnError(SnsTriggerError):
    """The topic identifier is not a well-formed SNS topic ARN. No calls are made."""

    code = ErrorCode.INVALID_SNS_ARN

    def __init__(self, topic_arn: str):
        super().__init__(f"Invalid SNS topic ARN: {topic_arn!r}")
        self.topic_arn = topic_arn


class MissingTenantContextError(SnsTriggerError):
    code = ErrorCode.MISSING_CLIENT_CODE


class ResourceDiscoveryError(SnsTriggerError):
    """The shared storage parameter could not be located through RAM."""

    code = ErrorCode.RAM_ERROR


class ParameterReadError(SnsTriggerError):
    """The storage parameter could not be read from SSM or is malformed."""

    code = ErrorCode.SSM_ERROR


class BlobStoreError(SnsTriggerError):
    """No destination accepted an offloaded payload."""

    code = ErrorCode.S3_ERROR
