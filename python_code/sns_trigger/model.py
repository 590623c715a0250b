"""
Data models for the SNS publishing client.

This module defines the core data structures passed between the formatter,
the partitioner, the offload coordinator and the dispatcher. Using dataclasses
and TypedDicts keeps the data contracts explicit, statically checked by mypy,
and self-documenting.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, TypedDict, Union

AttributeValue = Union[str, int, float, bool, Sequence[Any]]


class SessionContext(Protocol):
    """Anything that can tell which tenant is publishing. `client_code` may be None."""

    client_code: Optional[str]


class WireAttribute(TypedDict):
    """A single SNS message attribute, as accepted by `publish` / `publish_batch`."""

    DataType: str
    StringValue: str


@dataclass(frozen=True)
class Event:
    """
    One logical event supplied by the caller.

    Attributes:
        content: The payload. Serialized to JSON as the message body.
        attributes: Free-form attributes; sequence values become `String.Array`.
        subject: Optional SNS subject.
        message_structure: Passed through verbatim (e.g. "json").
        message_group_id: FIFO topics only.
        message_deduplication_id: FIFO topics only.
        payload_fixed_properties: Content keys that must stay inline if the
                                  payload is offloaded to S3.
    """

    content: Any
    attributes: Optional[Mapping[str, AttributeValue]] = None
    subject: Optional[str] = None
    message_structure: Optional[str] = None
    message_group_id: Optional[str] = None
    message_deduplication_id: Optional[str] = None
    payload_fixed_properties: Sequence[str] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Builds an Event from the camelCase dictionary shape callers usually send."""
        if "content" not in data:
            raise ValueError("Event is missing the required 'content' property.")
        return cls(
            content=data["content"],
            attributes=data.get("attributes"),
            subject=data.get("subject"),
            message_structure=data.get("messageStructure"),
            message_group_id=data.get("messageGroupId"),
            message_deduplication_id=data.get("messageDeduplicationId"),
            payload_fixed_properties=_as_key_tuple(data.get("payloadFixedProperties")),
        )


def _as_key_tuple(value: Any) -> Tuple[str, ...]:
    """A bare string names one key; it must not be split into characters."""
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"payloadFixedProperties must be a list of keys, got {type(value).__name__}.")
    return tuple(value)


@dataclass(frozen=True)
class Destination:
    """An S3 bucket that can receive offloaded payloads."""

    bucket_name: str
    region: str
    default: bool = False
    role_arn: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Destination":
        return cls(
            bucket_name=data["bucketName"],
            region=data["region"],
            default=bool(data.get("default", False)),
            role_arn=data.get("roleArn"),
        )


@dataclass(frozen=True)
class TopicRef:
    """The pieces of a topic ARN the publisher cares about."""

    arn: str
    name: str
    fifo: bool


@dataclass(frozen=True)
class WireEntry:
    """
    An immutable, ready-to-send SNS entry.

    Only the fields SNS understands live here; offload bookkeeping stays on
    the DraftEntry that produced it.
    """

    message: str
    message_attributes: Dict[str, WireAttribute] = field(default_factory=dict)
    id: Optional[str] = None
    subject: Optional[str] = None
    message_structure: Optional[str] = None
    message_group_id: Optional[str] = None
    message_deduplication_id: Optional[str] = None

    def to_request(self) -> Dict[str, Any]:
        """Renders the entry with the parameter names boto3 expects, omitting unset fields."""
        request: Dict[str, Any] = {}
        if self.id is not None:
            request["Id"] = self.id
        request["Message"] = self.message
        if self.message_attributes:
            request["MessageAttributes"] = dict(self.message_attributes)
        if self.subject:
            request["Subject"] = self.subject
        if self.message_deduplication_id:
            request["MessageDeduplicationId"] = self.message_deduplication_id
        if self.message_group_id:
            request["MessageGroupId"] = self.message_group_id
        if self.message_structure:
            request["MessageStructure"] = self.message_structure
        return request


@dataclass
class DraftEntry:
    """
    A mutable working copy of one formatted event.

    Created by the formatter, packed by the partitioner and turned into a
    WireEntry by the dispatcher once any offload has been resolved.

    Attributes:
        content: The original payload, kept so it can be uploaded in full.
        wire: The entry as it would be sent without offload.
        size: Byte length of the serialized wire entry.
        exceeds_limit: True when `size` is above the SNS message limit.
        content_path: S3 key for the offloaded payload (only when exceeding).
        fixed_properties: Keys to keep inline after offload.
        estimated_size: Size used for batch packing; the post-offload
                        estimate when exceeding, otherwise `size`.
    """

    content: Any
    wire: WireEntry
    size: int
    exceeds_limit: bool = False
    content_path: Optional[str] = None
    fixed_properties: Sequence[str] = ()
    estimated_size: int = 0

    @property
    def id(self) -> Optional[str]:
        return self.wire.id


@dataclass
class Batch:
    """An ordered group of entries sent in one `publish_batch` call."""

    entries: List[DraftEntry] = field(default_factory=list)
    size: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def append(self, entry: DraftEntry) -> None:
        self.entries.append(entry)
        self.size += entry.estimated_size


@dataclass(frozen=True)
class SuccessOutcome:
    id: str
    message_id: str
    sequence_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "messageId": self.message_id}
        if self.sequence_number:
            data["sequenceNumber"] = self.sequence_number
        return data


@dataclass(frozen=True)
class FailedOutcome:
    id: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "code": self.code, "message": self.message}


@dataclass
class BatchOutcome:
    """What one `publish_batch` call (plus its offload failures) produced."""

    success: List[SuccessOutcome] = field(default_factory=list)
    failed: List[FailedOutcome] = field(default_factory=list)


@dataclass(frozen=True)
class PublishEventResult:
    message_id: str
    sequence_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"messageId": self.message_id}
        if self.sequence_number:
            data["sequenceNumber"] = self.sequence_number
        return data


@dataclass
class PublishEventsResult:
    """
    The aggregated outcome of a `publish_events` call.

    A non-empty `failed` list is a partial, recoverable result. Systemic
    problems are raised instead of being reported here.
    """

    success_count: int = 0
    failed_count: int = 0
    success: List[SuccessOutcome] = field(default_factory=list)
    failed: List[FailedOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "success": [outcome.to_dict() for outcome in self.success],
            "failed": [outcome.to_dict() for outcome in self.failed],
        }
