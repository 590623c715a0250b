"""In-memory stand-ins for the AWS clients the publisher talks to."""

import json
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:MyTopic"
FIFO_TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:MyTopic.fifo"
PARAMETER_ARN = "arn:aws:ssm:us-east-1:999999999999:parameter/shared/internal-storage"
PRIMARY_BUCKET = "primary-bucket"
SECONDARY_BUCKET = "secondary-bucket"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class FakeSNSClient:
    """Records publish calls and answers with canned responses."""

    def __init__(self) -> None:
        self.publish_calls: List[Dict[str, Any]] = []
        self.batch_calls: List[Dict[str, Any]] = []
        self.fail_ids: Dict[str, str] = {}
        self.batch_error: Optional[ClientError] = None
        self.publish_error: Optional[ClientError] = None
        self.sequence_number: Optional[str] = None
        self._lock = threading.Lock()

    def publish(self, **kwargs: Any) -> Dict[str, Any]:
        with self._lock:
            self.publish_calls.append(kwargs)
        if self.publish_error is not None:
            raise self.publish_error
        response = {"MessageId": "message-single"}
        if self.sequence_number:
            response["SequenceNumber"] = self.sequence_number
        return response

    def publish_batch(self, **kwargs: Any) -> Dict[str, Any]:
        with self._lock:
            self.batch_calls.append(kwargs)
        if self.batch_error is not None:
            raise self.batch_error
        successful, failed = [], []
        for entry in kwargs["PublishBatchRequestEntries"]:
            entry_id = entry["Id"]
            if entry_id in self.fail_ids:
                failed.append({"Id": entry_id, "Code": self.fail_ids[entry_id], "Message": "rejected", "SenderFault": True})
            else:
                item = {"Id": entry_id, "MessageId": f"message-{entry_id}"}
                if self.sequence_number:
                    item["SequenceNumber"] = self.sequence_number
                successful.append(item)
        return {"Successful": successful, "Failed": failed}

    @property
    def published_entries(self) -> List[Dict[str, Any]]:
        return [entry for call in self.batch_calls for entry in call["PublishBatchRequestEntries"]]


class FakeRAMClient:
    def __init__(self, arns: Optional[List[str]] = None, error: Optional[ClientError] = None) -> None:
        self.arns = arns if arns is not None else [PARAMETER_ARN]
        self.error = error
        self.calls = 0

    def list_resources(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {"resources": [{"arn": arn} for arn in self.arns]}


class FakeSSMClient:
    def __init__(self, value: Any = None, error: Optional[ClientError] = None) -> None:
        self.value = value
        self.error = error
        self.calls = 0

    def get_parameter(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {"Parameter": {"Name": kwargs["Name"], "Value": json.dumps(self.value)}}


@dataclass
class FakeSession:
    client_code: Optional[str] = None


def big_content(size: int = 300 * 1024, **extra: Any) -> Dict[str, Any]:
    """Content whose serialized form is comfortably above the SNS message limit."""
    return {"blob": "x" * size, **extra}


def read_object(s3_client: Any, bucket: str, key: str) -> Any:
    return json.loads(s3_client.get_object(Bucket=bucket, Key=key)["Body"].read())
