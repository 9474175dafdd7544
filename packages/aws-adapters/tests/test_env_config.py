"""Tests for building adapters from environment variables."""

import os
from unittest.mock import patch

import pytest

from resource_media_aws_adapters import env_config


def test_sqs_wait_time_default_and_clamp() -> None:
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("SQS_LONG_POLL_WAIT_SECONDS", None)
        assert env_config._sqs_wait_time_seconds() == 20
    with patch.dict(os.environ, {"SQS_LONG_POLL_WAIT_SECONDS": "45"}):
        assert env_config._sqs_wait_time_seconds() == 20
    with patch.dict(os.environ, {"SQS_LONG_POLL_WAIT_SECONDS": "-3"}):
        assert env_config._sqs_wait_time_seconds() == 0


def test_visibility_timeout_default() -> None:
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("SQS_VISIBILITY_TIMEOUT_SECONDS", None)
        assert env_config.sqs_visibility_timeout_seconds() == 300
    with patch.dict(os.environ, {"SQS_VISIBILITY_TIMEOUT_SECONDS": "900"}):
        assert env_config.sqs_visibility_timeout_seconds() == 900


@pytest.mark.parametrize(
    ("value", "expected"),
    [("true", True), ("1", True), ("false", False), ("NO", False), (" off ", False)],
)
def test_presigned_downloads_flag(value: str, expected: bool) -> None:
    with patch.dict(os.environ, {"S3_PRESIGNED_DOWNLOADS": value}):
        assert env_config._presigned_downloads() is expected


def test_media_bucket_name_required() -> None:
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("AWS_S3_BUCKET_NAME", None)
        with pytest.raises(KeyError):
            env_config.media_bucket_name()
    with patch.dict(os.environ, {"AWS_S3_BUCKET_NAME": "media"}):
        assert env_config.media_bucket_name() == "media"


def test_queue_receiver_from_env(sqs_queue) -> None:
    env = {
        "SQS_QUEUE_URL": sqs_queue,
        "AWS_REGION": "us-east-1",
        "SQS_LONG_POLL_WAIT_SECONDS": "0",
        "SQS_VISIBILITY_TIMEOUT_SECONDS": "120",
    }
    with patch.dict(os.environ, env):
        sender = env_config.transcode_queue_sender_from_env()
        receiver = env_config.transcode_queue_receiver_from_env()
        sender.send("hello")
        messages = receiver.receive()
    assert [m.body for m in messages] == ["hello"]
    assert receiver._visibility_timeout == 120


def test_resource_catalog_from_env(resources_table) -> None:
    env = {"CATALOG_TABLE_NAME": resources_table, "AWS_REGION": "us-east-1"}
    with patch.dict(os.environ, env):
        catalog = env_config.resource_catalog_from_env()
    assert catalog.get("res-1")["title"] == "Sunset timelapse"
