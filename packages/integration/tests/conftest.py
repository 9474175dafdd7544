"""
Pytest fixtures for integration tests: moto-backed AWS resources and env setup.

All resource names and queue URLs are set in os.environ so that env_config in
aws-adapters and the transcode worker use the same resources when tests run.
"""

import os
import subprocess
from pathlib import Path

import pytest
from moto import mock_aws

RESOURCE_ID = "res-int-1"
OWNER_ID = "user-int-1"


@pytest.fixture(scope="function")
def aws_credentials() -> None:
    """Set fake AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def moto_aws(aws_credentials: None) -> None:
    """Enable moto mock for DynamoDB, SQS, S3."""
    with mock_aws():
        yield


def _create_resources_table(client: object) -> str:
    client.create_table(
        TableName="int-test-resources",
        BillingMode="PAY_PER_REQUEST",
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
    )
    return "int-test-resources"


@pytest.fixture
def integration_env(moto_aws: None) -> dict[str, str]:
    """
    Create the catalog table, transcode queue and media bucket and set os.environ.
    Seeds one catalog record (RESOURCE_ID). Returns the resource names/URLs.
    """
    import boto3

    region = "us-east-1"
    dynamodb = boto3.client("dynamodb", region_name=region)
    sqs = boto3.client("sqs", region_name=region)
    s3 = boto3.client("s3", region_name=region)

    resources_table = _create_resources_table(dynamodb)
    boto3.resource("dynamodb", region_name=region).Table(resources_table).put_item(
        Item={"id": RESOURCE_ID, "title": "Integration clip", "owner": OWNER_ID}
    )
    queue_url = sqs.create_queue(QueueName="int-test-transcode")["QueueUrl"]
    media_bucket = "int-test-media-bucket"
    s3.create_bucket(Bucket=media_bucket)

    env = {
        "CATALOG_TABLE_NAME": resources_table,
        "CATALOG_BACKEND": "dynamodb",
        "SQS_QUEUE_URL": queue_url,
        "SQS_LONG_POLL_WAIT_SECONDS": "0",
        "AWS_S3_BUCKET_NAME": media_bucket,
        # Presigned URLs point at real S3 endpoints; moto only intercepts boto3 calls
        "S3_PRESIGNED_DOWNLOADS": "false",
        "AWS_REGION": region,
    }
    for k, v in env.items():
        os.environ[k] = v
    yield env
    for k in env:
        os.environ.pop(k, None)


def make_test_video(
    path: str | Path,
    *,
    duration_sec: float = 4.0,
    size: str = "1920x1080",
    with_audio: bool = True,
) -> bool:
    """
    Create a test-pattern video (optionally with a sine-tone audio track) using ffmpeg.
    Returns True if the file was created, False if ffmpeg is not available.
    """
    path = Path(path)
    cmd = [
        "ffmpeg",
        "-y",
        "-f",
        "lavfi",
        "-i",
        f"testsrc=size={size}:rate=30:duration={duration_sec}",
    ]
    if with_audio:
        cmd += ["-f", "lavfi", "-i", f"sine=frequency=440:duration={duration_sec}", "-c:a", "aac"]
    cmd += [
        "-t",
        str(duration_sec),
        "-pix_fmt",
        "yuv420p",
        "-c:v",
        "libx264",
        "-preset",
        "ultrafast",
        "-f",
        "mov",
        str(path),
    ]
    try:
        subprocess.run(cmd, check=True, capture_output=True)
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False
    return path.exists()


@pytest.fixture
def source_video_path(tmp_path: Path) -> Path | None:
    """A 4-second 1080p .mov with audio, or None if ffmpeg is not available."""
    path = tmp_path / "source.mov"
    if make_test_video(path):
        return path
    return None
