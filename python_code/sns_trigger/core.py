"""
Core formatting, batching and aggregation logic for the SNS publisher.

These functions are designed to be "pure" and testable, containing no AWS SDK
calls and no global state. They receive everything they need (settings, the
tenant code, the current time) as arguments, allowing them to be unit-tested
in isolation. The stateful and I/O-bound parts live in offload.py and
dispatcher.py.
"""

import json
import re
import secrets
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .config import (
    DESTINATION_METADATA_ALLOWANCE,
    SNS_MAX_BATCH_SIZE,
    SNS_MESSAGE_LIMIT_SIZE,
    TENANT_ATTRIBUTE_NAME,
    TOPIC_ATTRIBUTE_NAME,
    Settings,
)
from .errors import InvalidTopicArnError, MissingTenantContextError
from .model import (
    AttributeValue,
    Batch,
    BatchOutcome,
    Destination,
    DraftEntry,
    Event,
    FailedOutcome,
    PublishEventsResult,
    SuccessOutcome,
    TopicRef,
    WireAttribute,
    WireEntry,
)

TOPIC_ARN_PATTERN = re.compile(
    r"^arn:(?P<partition>[\w-]+):sns:(?P<region>[\w-]+):(?P<account>\d+)"
    r":(?P<name>[\w-]{1,256}?)(?P<fifo>\.fifo)?$"
)

CONTENT_LOCATION_KEY = "contentS3Location"

_RANDOM_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ123456789"
_RANDOM_ID_LENGTH = 13


# --- Topic Resolver ---

def resolve_topic(topic_arn: str) -> TopicRef:
    """
    Validates a topic ARN and extracts its bare name.

    Args:
        topic_arn: A fully qualified ARN, e.g. arn:aws:sns:us-east-1:123456789012:MyTopic.fifo

    Returns:
        A TopicRef whose `name` has any `.fifo` suffix stripped.

    Raises:
        InvalidTopicArnError: If the string does not look like an SNS topic ARN.
    """
    match = TOPIC_ARN_PATTERN.match(topic_arn) if isinstance(topic_arn, str) else None
    if not match:
        raise InvalidTopicArnError(topic_arn)
    return TopicRef(arn=topic_arn, name=match.group("name"), fifo=match.group("fifo") is not None)


def get_topic_name(topic_arn: str) -> str:
    return resolve_topic(topic_arn).name


# --- Attribute Formatter ---

def _json_default(value: Any) -> Any:
    # Decimals (e.g. numbers read from DynamoDB) stay numbers; anything else becomes its str().
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return str(value)


def _scalar_to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    # json.dumps renders booleans as true/false, which is what consumers filter on.
    return json.dumps(value, default=_json_default)


def format_attributes(
    attributes: Optional[Mapping[str, AttributeValue]],
    topic_name: str,
    client_code: Optional[str] = None,
) -> Dict[str, WireAttribute]:
    """
    Converts free-form attributes into SNS message attributes.

    Sequences become `String.Array` attributes holding their JSON form; any
    other value becomes a `String`. None values are skipped, SNS rejects them.
    The derived `topicName` and tenant attributes are written last, so they
    win over a user attribute with the same name.
    """
    formatted: Dict[str, WireAttribute] = {}

    for key, value in (attributes or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            formatted[key] = {"DataType": "String.Array", "StringValue": json.dumps(list(value), default=_json_default)}
        else:
            formatted[key] = {"DataType": "String", "StringValue": _scalar_to_string(value)}

    formatted[TOPIC_ATTRIBUTE_NAME] = {"DataType": "String", "StringValue": topic_name}
    if client_code:
        formatted[TENANT_ATTRIBUTE_NAME] = {"DataType": "String", "StringValue": client_code}

    return formatted


# --- Content Locator Builder ---

def generate_random_id(length: int = _RANDOM_ID_LENGTH) -> str:
    return "".join(secrets.choice(_RANDOM_ID_ALPHABET) for _ in range(length))


def resolve_namespace(client_code: Optional[str], settings: Settings) -> str:
    """Returns the tenant code, or the fallback namespace when offloading without one is allowed."""
    if client_code:
        return client_code
    if settings.require_tenant_for_offload:
        raise MissingTenantContextError(
            "A tenant client code is required to offload an oversized payload and none is available."
        )
    return settings.default_namespace


def build_content_path(
    topic_name: str,
    settings: Settings,
    client_code: Optional[str] = None,
    now: Optional[datetime] = None,
    random_id: Optional[str] = None,
) -> str:
    """
    Builds the S3 key for an offloaded payload.

    The layout is `<tenant>/<service>/<topic>/<YYYY>/<MM>/<DD>/<random>.json`,
    dated in UTC. The random suffix makes keys collision-resistant even for
    identical payloads published in the same instant.
    """
    namespace = resolve_namespace(client_code, settings)
    now = now or datetime.now(timezone.utc)
    random_id = random_id or generate_random_id()
    return f"{namespace}/{settings.service_name}/{topic_name}/{now.strftime('%Y/%m/%d')}/{random_id}.json"


def pick_properties(content: Any, keys: Sequence[str]) -> Dict[str, Any]:
    """Copies only the listed keys that exist in `content`. Non-dict content yields nothing."""
    if not isinstance(content, Mapping):
        return {}
    return {key: content[key] for key in keys if key in content}


def build_offloaded_message(
    content: Any,
    content_path: str,
    fixed_properties: Sequence[str],
    destination: Optional[Destination] = None,
) -> str:
    """
    Builds the body sent in place of an offloaded payload.

    The body is `{"contentS3Location": {"path", "bucketName", "region"}}` plus
    the fixed properties picked from the content. The key names match the
    `bucketName`/`region` fields of the destination list, so consumers can
    read the object back with the same vocabulary.

    Without a destination the bucket name and region are left empty, which is
    what the size estimate is computed from.
    """
    body: Dict[str, Any] = {
        CONTENT_LOCATION_KEY: {
            "path": content_path,
            "bucketName": destination.bucket_name if destination else "",
            "region": destination.region if destination else "",
        }
    }
    # Fixed properties never overwrite the location reference.
    for key, value in pick_properties(content, fixed_properties).items():
        body.setdefault(key, value)
    return serialize_content(body)


# --- Size-Aware Event Formatter ---

def serialize_content(content: Any) -> str:
    return json.dumps(content, separators=(",", ":"), ensure_ascii=False, default=str)


def entry_size(wire: WireEntry) -> int:
    """Byte length of the entry as it goes over the wire."""
    return len(serialize_content(wire.to_request()).encode("utf-8"))


def as_event(event: Union[Event, Mapping[str, Any]]) -> Event:
    return event if isinstance(event, Event) else Event.from_dict(event)


def format_event(
    event: Union[Event, Mapping[str, Any]],
    topic_name: str,
    settings: Settings,
    entry_id: Optional[str] = None,
    client_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DraftEntry:
    """
    Formats one event into a DraftEntry and decides whether it needs offloading.

    Oversized events are not rejected here. They are marked `exceeds_limit`,
    given a content path, and sized by what they will weigh once the payload
    has been replaced by its S3 location, so batch packing can use a realistic
    figure.

    Raises:
        MissingTenantContextError: Oversized event, no tenant code, and the
                                   settings require one.
    """
    event = as_event(event)
    wire = WireEntry(
        id=entry_id,
        message=serialize_content(event.content),
        message_attributes=format_attributes(event.attributes, topic_name, client_code),
        subject=event.subject,
        message_structure=event.message_structure,
        message_group_id=event.message_group_id,
        message_deduplication_id=event.message_deduplication_id,
    )
    size = entry_size(wire)
    draft = DraftEntry(content=event.content, wire=wire, size=size, estimated_size=size)

    if size > SNS_MESSAGE_LIMIT_SIZE:
        draft.exceeds_limit = True
        draft.fixed_properties = tuple(event.payload_fixed_properties)
        draft.content_path = build_content_path(topic_name, settings, client_code, now)
        draft.estimated_size = estimate_offloaded_size(draft)

    return draft


def estimate_offloaded_size(draft: DraftEntry) -> int:
    message = build_offloaded_message(draft.content, draft.content_path or "", draft.fixed_properties)
    shrunk = replace(draft.wire, message=message)
    return entry_size(shrunk) + DESTINATION_METADATA_ALLOWANCE


def offloaded_wire_entry(draft: DraftEntry, destination: Destination) -> WireEntry:
    """Returns the entry to send once the full payload is stored in `destination`."""
    if not draft.content_path:
        raise ValueError("Entry has no content path; it was not marked for offload.")
    message = build_offloaded_message(draft.content, draft.content_path, draft.fixed_properties, destination)
    return replace(draft.wire, message=message)


# --- Batch Partitioner ---

def pack_entries(drafts: Iterable[DraftEntry]) -> List[Batch]:
    """
    Packs entries into batches, preserving order.

    A new batch opens when the current one already holds the maximum number of
    entries, or when adding the next entry would push it over the size limit.
    An entry is never dropped: one that is too big on its own still gets a
    batch of its own.
    """
    batches: List[Batch] = []
    current = Batch()

    for draft in drafts:
        if current.entries and (
            len(current) == SNS_MAX_BATCH_SIZE
            or current.size + draft.estimated_size > SNS_MESSAGE_LIMIT_SIZE
        ):
            batches.append(current)
            current = Batch()
        current.append(draft)

    if current.entries:
        batches.append(current)
    return batches


def partition_events(
    events: Sequence[Union[Event, Mapping[str, Any]]],
    topic_name: str,
    settings: Settings,
    client_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Batch]:
    """Formats events with ids "1", "2", ... in input order and packs them into batches."""
    drafts = [
        format_event(event, topic_name, settings, entry_id=str(index), client_code=client_code, now=now)
        for index, event in enumerate(events, start=1)
    ]
    return pack_entries(drafts)


# --- Result Aggregator ---

def parse_batch_response(response: Mapping[str, Any]) -> BatchOutcome:
    """Converts a publish_batch response into outcomes keyed by entry id."""
    outcome = BatchOutcome()
    for item in response.get("Successful") or []:
        outcome.success.append(
            SuccessOutcome(id=item["Id"], message_id=item["MessageId"], sequence_number=item.get("SequenceNumber"))
        )
    for item in response.get("Failed") or []:
        outcome.failed.append(
            FailedOutcome(id=item["Id"], code=item.get("Code", ""), message=item.get("Message", ""))
        )
    return outcome


def _numeric_id(outcome: Union[SuccessOutcome, FailedOutcome]) -> int:
    try:
        return int(outcome.id)
    except ValueError:
        return 0


def aggregate_results(outcomes: Iterable[BatchOutcome]) -> PublishEventsResult:
    """
    Merges per-batch outcomes into one result.

    Batches can finish in any order, so both lists are sorted by numeric id.
    """
    result = PublishEventsResult()
    for outcome in outcomes:
        result.success.extend(outcome.success)
        result.failed.extend(outcome.failed)

    result.success.sort(key=_numeric_id)
    result.failed.sort(key=_numeric_id)
    result.success_count = len(result.success)
    result.failed_count = len(result.failed)
    return result
