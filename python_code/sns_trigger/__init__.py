"""Publish-side SNS client with size-aware batching and S3 offload of oversized payloads."""

from .app import SnsTrigger
from .config import Settings
from .core import get_topic_name, resolve_topic
from .errors import (
    BlobStoreError,
    ErrorCode,
    InvalidTopicArnError,
    MissingTenantContextError,
    ParameterReadError,
    ResourceDiscoveryError,
    SnsTriggerError,
)
from .model import Destination, Event, PublishEventResult, PublishEventsResult
from .parameter_store import AsyncCache, ParameterStore
from .s3_uploader import S3Uploader

__all__ = [
    "AsyncCache",
    "BlobStoreError",
    "Destination",
    "ErrorCode",
    "Event",
    "InvalidTopicArnError",
    "MissingTenantContextError",
    "ParameterReadError",
    "ParameterStore",
    "PublishEventResult",
    "PublishEventsResult",
    "ResourceDiscoveryError",
    "S3Uploader",
    "Settings",
    "SnsTrigger",
    "SnsTriggerError",
    "get_topic_name",
    "resolve_topic",
]
