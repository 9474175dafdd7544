"""
Cloud-agnostic interfaces for the transcode queue, object storage, and the resource catalog.

Implementations (e.g. AWS via SQS, S3, DynamoDB, or an HTTP catalog) live in
separate packages. Pipeline logic depends on these interfaces and receives the
implementation by config, so tests can substitute in-memory fakes.

Every side effect behind these interfaces must be safe to repeat: the queue
redelivers a message whenever a worker dies or fails before acknowledging it.
"""

from typing import Protocol, runtime_checkable

from .models import CatalogPatch


class ObjectNotFoundError(Exception):
    """The requested object does not exist in storage."""

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"object not found: s3://{bucket}/{key}")
        self.bucket = bucket
        self.key = key


class CatalogUpdateError(RuntimeError):
    """The catalog did not durably apply a patch."""


class QueueMessage:
    """A message received from a queue (body + receipt handle for delete)."""

    def __init__(
        self,
        receipt_handle: str,
        body: str | bytes,
        *,
        message_id: str | None = None,
        receive_count: int = 1,
    ) -> None:
        self.receipt_handle = receipt_handle
        self.body = body
        self.message_id = message_id
        self.receive_count = receive_count


@runtime_checkable
class QueueSender(Protocol):
    """Send messages to a queue."""

    def send(self, body: str | bytes, *, attributes: dict[str, str] | None = None) -> None:
        """Send one message with the given body and optional string attributes."""
        ...


@runtime_checkable
class QueueReceiver(Protocol):
    """Receive, delete, and hide messages on a queue with visibility-timeout redelivery."""

    def receive(self, max_messages: int = 1) -> list[QueueMessage]:
        """Receive up to max_messages (long poll). Returns empty list if none available."""
        ...

    def delete(self, receipt_handle: str) -> None:
        """Delete a message by its receipt handle after successful processing."""
        ...

    def change_visibility(self, receipt_handle: str, timeout_seconds: int) -> None:
        """Keep an in-flight message hidden for timeout_seconds from now."""
        ...


@runtime_checkable
class ObjectStorage(Protocol):
    """Object storage: signed read URLs, upload/download bytes or files, delete."""

    def presign_download(self, bucket: str, key: str, *, expires_in: int = 3600) -> str:
        """Return a presigned GET URL for the given bucket and key."""
        ...

    def upload(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
    ) -> None:
        """Upload bytes to the given bucket and key (overwrites)."""
        ...

    def upload_file(
        self,
        bucket: str,
        key: str,
        path: str,
        *,
        content_type: str | None = None,
    ) -> None:
        """Upload a file from local path to bucket/key. May use multipart for large files."""
        ...

    def download(self, bucket: str, key: str) -> bytes:
        """Download object and return its body. Raises ObjectNotFoundError if missing."""
        ...

    def download_file(self, bucket: str, key: str, path: str) -> None:
        """Download object fully to a local path. Raises ObjectNotFoundError if missing."""
        ...

    def delete(self, bucket: str, key: str) -> None:
        """Delete object. Deleting a missing key is not an error."""
        ...

    def exists(self, bucket: str, key: str) -> bool:
        """Return True if the object exists, False otherwise."""
        ...


@runtime_checkable
class ResourceCatalog(Protocol):
    """Persisted resource records, updated with last-write-wins partial patches."""

    def apply_patch(self, resource_id: str, patch: CatalogPatch) -> None:
        """Write only the patch's non-null fields. Raises CatalogUpdateError on failure."""
        ...
