"""Pytest fixtures for aws-adapters tests (moto-backed AWS resources)."""

import os

import pytest
from moto import mock_aws


@pytest.fixture(scope="function")
def aws_credentials():
    """Set fake AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def moto_aws(aws_credentials):
    """Enable moto mock for DynamoDB, SQS, S3."""
    with mock_aws():
        yield


@pytest.fixture
def resources_table(moto_aws):
    """Create the Resources catalog table with one existing record."""
    import boto3

    client = boto3.client("dynamodb", region_name="us-east-1")
    client.create_table(
        TableName="test-resources",
        BillingMode="PAY_PER_REQUEST",
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
    )
    table = boto3.resource("dynamodb", region_name="us-east-1").Table("test-resources")
    table.put_item(
        Item={
            "id": "res-1",
            "title": "Sunset timelapse",
            "status": "pending",
            "preview_url": "video-previews/u-1/old-preview.mp4",
        }
    )
    return "test-resources"


@pytest.fixture
def sqs_queue(moto_aws):
    """Create an SQS queue and return its URL."""
    import boto3

    client = boto3.client("sqs", region_name="us-east-1")
    resp = client.create_queue(QueueName="test-transcode-queue")
    return resp["QueueUrl"]


@pytest.fixture
def media_bucket(moto_aws):
    """Create the media S3 bucket."""
    import boto3

    client = boto3.client("s3", region_name="us-east-1")
    client.create_bucket(Bucket="test-media-bucket")
    return "test-media-bucket"
