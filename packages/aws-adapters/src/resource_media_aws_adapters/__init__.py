"""AWS implementations of resource-media cloud interfaces."""

from .dynamodb_catalog import DynamoDBResourceCatalog
from .s3_storage import S3ObjectStorage
from .sqs_queues import SQSQueueReceiver, SQSQueueSender

__all__ = [
    "DynamoDBResourceCatalog",
    "S3ObjectStorage",
    "SQSQueueReceiver",
    "SQSQueueSender",
]
