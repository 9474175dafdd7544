"""SQS implementations of QueueSender and QueueReceiver."""

import base64

import boto3
from resource_media_shared.interfaces import QueueMessage

# SQS caps a single long poll at 20 seconds and a visibility timeout at 12 hours
MAX_WAIT_TIME_SECONDS = 20
MAX_VISIBILITY_TIMEOUT_SECONDS = 12 * 60 * 60


def _encode_body(body: str | bytes) -> str:
    """Encode body for SQS (SQS MessageBody must be string)."""
    if isinstance(body, bytes):
        return base64.b64encode(body).decode("ascii")
    return body


def _message_attributes(attributes: dict[str, str]) -> dict[str, dict[str, str]]:
    return {
        name: {"DataType": "String", "StringValue": value}
        for name, value in attributes.items()
        if value
    }


class SQSQueueSender:
    """QueueSender implementation using SQS."""

    def __init__(
        self,
        queue_url: str,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self._queue_url = queue_url
        self._client = boto3.client(
            "sqs",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )

    def send(self, body: str | bytes, *, attributes: dict[str, str] | None = None) -> None:
        """Send one message with the given body and optional string attributes."""
        params: dict = {
            "QueueUrl": self._queue_url,
            "MessageBody": _encode_body(body),
        }
        if attributes:
            message_attributes = _message_attributes(attributes)
            if message_attributes:
                params["MessageAttributes"] = message_attributes
        self._client.send_message(**params)


class SQSQueueReceiver:
    """QueueReceiver implementation using SQS."""

    def __init__(
        self,
        queue_url: str,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        wait_time_seconds: int = 0,
        visibility_timeout: int | None = None,
    ) -> None:
        self._queue_url = queue_url
        self._wait_time_seconds = min(MAX_WAIT_TIME_SECONDS, max(0, wait_time_seconds))
        self._visibility_timeout = visibility_timeout
        self._client = boto3.client(
            "sqs",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )

    def receive(self, max_messages: int = 1) -> list[QueueMessage]:
        """Receive up to max_messages. Returns empty list if none available."""
        params: dict = {
            "QueueUrl": self._queue_url,
            "MaxNumberOfMessages": min(max(1, max_messages), 10),
            "WaitTimeSeconds": self._wait_time_seconds,
            "AttributeNames": ["All"],
        }
        if self._visibility_timeout is not None:
            params["VisibilityTimeout"] = self._visibility_timeout
        resp = self._client.receive_message(**params)
        messages = resp.get("Messages") or []
        result = []
        for msg in messages:
            attrs = msg.get("Attributes") or {}
            result.append(
                QueueMessage(
                    receipt_handle=msg["ReceiptHandle"],
                    body=msg["Body"],
                    message_id=msg.get("MessageId"),
                    receive_count=int(attrs.get("ApproximateReceiveCount", "1")),
                )
            )
        return result

    def delete(self, receipt_handle: str) -> None:
        """Delete a message by its receipt handle after successful processing."""
        self._client.delete_message(
            QueueUrl=self._queue_url,
            ReceiptHandle=receipt_handle,
        )

    def change_visibility(self, receipt_handle: str, timeout_seconds: int) -> None:
        """Hide an in-flight message for timeout_seconds from now."""
        self._client.change_message_visibility(
            QueueUrl=self._queue_url,
            ReceiptHandle=receipt_handle,
            VisibilityTimeout=min(MAX_VISIBILITY_TIMEOUT_SECONDS, max(0, timeout_seconds)),
        )
