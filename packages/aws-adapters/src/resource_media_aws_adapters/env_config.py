"""
Build AWS adapter instances from environment variables.

Resource names (queue URL, bucket, table) are passed into the process as env vars
by the deployment, so nothing is hardcoded.

Required env vars:
- SQS_QUEUE_URL: transcode queue (web app sends, transcode-worker consumes)
- AWS_S3_BUCKET_NAME: bucket holding originals and derived artifacts
- CATALOG_TABLE_NAME: only when the DynamoDB catalog backend is used

Optional:
- AWS_REGION (default: boto3 resolution)
- AWS_ENDPOINT_URL (e.g. for LocalStack)
- SQS_LONG_POLL_WAIT_SECONDS (default: 20, max 20) for receive long polling
- SQS_VISIBILITY_TIMEOUT_SECONDS (default: 300): how long a received job stays hidden
- S3_PRESIGNED_DOWNLOADS (default: true): download sources through presigned GET URLs
- CATALOG_KEY_ATTRIBUTE (default: id): partition key of the catalog table

IAM: the worker role needs s3:ListBucket on AWS_S3_BUCKET_NAME in addition to
s3:GetObject/PutObject/DeleteObject. Without it S3 answers 403 instead of 404 for a
missing key, and a redelivered job whose source was already reclaimed fails
instead of being acknowledged.
"""

import os

from .dynamodb_catalog import DynamoDBResourceCatalog
from .s3_storage import S3ObjectStorage
from .sqs_queues import SQSQueueReceiver, SQSQueueSender

DEFAULT_VISIBILITY_TIMEOUT_SECONDS = 300

_FALSE_VALUES = ("0", "false", "no", "off")


def _sqs_wait_time_seconds() -> int:
    """Long-poll wait time for SQS receive (0-20). Default 20 for responsive pickup."""
    val = os.environ.get("SQS_LONG_POLL_WAIT_SECONDS", "20")
    return min(20, max(0, int(val)))


def sqs_visibility_timeout_seconds() -> int:
    """Visibility timeout requested on receive; must exceed the p95 job duration."""
    val = os.environ.get(
        "SQS_VISIBILITY_TIMEOUT_SECONDS", str(DEFAULT_VISIBILITY_TIMEOUT_SECONDS)
    )
    return max(1, int(val))


def _presigned_downloads() -> bool:
    val = os.environ.get("S3_PRESIGNED_DOWNLOADS", "true")
    return val.strip().lower() not in _FALSE_VALUES


def _get_region() -> str | None:
    return os.environ.get("AWS_REGION") or None


def _get_endpoint_url() -> str | None:
    return os.environ.get("AWS_ENDPOINT_URL") or None


def transcode_queue_sender_from_env() -> SQSQueueSender:
    """Build SQSQueueSender for the transcode queue from SQS_QUEUE_URL."""
    url = os.environ["SQS_QUEUE_URL"]
    return SQSQueueSender(
        url,
        region_name=_get_region(),
        endpoint_url=_get_endpoint_url(),
    )


def transcode_queue_receiver_from_env() -> SQSQueueReceiver:
    """Build SQSQueueReceiver for the transcode queue from SQS_QUEUE_URL."""
    url = os.environ["SQS_QUEUE_URL"]
    return SQSQueueReceiver(
        url,
        region_name=_get_region(),
        endpoint_url=_get_endpoint_url(),
        wait_time_seconds=_sqs_wait_time_seconds(),
        visibility_timeout=sqs_visibility_timeout_seconds(),
    )


def object_storage_from_env() -> S3ObjectStorage:
    """Build S3ObjectStorage (uses default credentials; bucket names come from callers)."""
    return S3ObjectStorage(
        region_name=_get_region(),
        endpoint_url=_get_endpoint_url(),
        presigned_downloads=_presigned_downloads(),
    )


def media_bucket_name() -> str:
    """Return media bucket name from AWS_S3_BUCKET_NAME."""
    return os.environ["AWS_S3_BUCKET_NAME"]


def resource_catalog_from_env() -> DynamoDBResourceCatalog:
    """Build DynamoDBResourceCatalog from CATALOG_TABLE_NAME."""
    table_name = os.environ["CATALOG_TABLE_NAME"]
    return DynamoDBResourceCatalog(
        table_name,
        key_attribute=os.environ.get("CATALOG_KEY_ATTRIBUTE") or "id",
        region_name=_get_region(),
        endpoint_url=_get_endpoint_url(),
    )
