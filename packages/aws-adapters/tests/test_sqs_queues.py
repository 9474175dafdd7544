"""Tests for SQS QueueSender and QueueReceiver."""

import base64

import boto3

from resource_media_aws_adapters import SQSQueueReceiver, SQSQueueSender


class TestSQSQueueSenderAndReceiver:
    """Tests for SQS queue send/receive/delete/visibility."""

    def test_send_and_receive_str(self, sqs_queue):
        sender = SQSQueueSender(sqs_queue, region_name="us-east-1")
        receiver = SQSQueueReceiver(sqs_queue, region_name="us-east-1")
        sender.send('{"resourceId":"r","key":"k","userId":"u"}')
        messages = receiver.receive(max_messages=5)
        assert len(messages) == 1
        assert messages[0].body == '{"resourceId":"r","key":"k","userId":"u"}'
        assert messages[0].message_id
        assert messages[0].receive_count == 1
        receiver.delete(messages[0].receipt_handle)
        assert receiver.receive(max_messages=5) == []

    def test_send_and_receive_bytes(self, sqs_queue):
        sender = SQSQueueSender(sqs_queue, region_name="us-east-1")
        receiver = SQSQueueReceiver(sqs_queue, region_name="us-east-1")
        payload = b"binary \xff\xfe"
        sender.send(payload)
        messages = receiver.receive(max_messages=5)
        assert len(messages) == 1
        assert base64.b64decode(messages[0].body.encode("ascii")) == payload

    def test_send_with_attributes(self, sqs_queue):
        sender = SQSQueueSender(sqs_queue, region_name="us-east-1")
        sender.send("{}", attributes={"resourceId": "r-1", "userId": "u-1", "contentType": ""})
        resp = boto3.client("sqs", region_name="us-east-1").receive_message(
            QueueUrl=sqs_queue, MessageAttributeNames=["All"]
        )
        attrs = resp["Messages"][0]["MessageAttributes"]
        assert attrs["resourceId"]["StringValue"] == "r-1"
        assert attrs["userId"]["StringValue"] == "u-1"
        assert "contentType" not in attrs

    def test_receive_empty_returns_empty_list(self, sqs_queue):
        receiver = SQSQueueReceiver(sqs_queue, region_name="us-east-1")
        assert receiver.receive(max_messages=1) == []

    def test_unacknowledged_message_redelivered_after_visibility_timeout(self, sqs_queue):
        sender = SQSQueueSender(sqs_queue, region_name="us-east-1")
        receiver = SQSQueueReceiver(sqs_queue, region_name="us-east-1", visibility_timeout=300)
        sender.send("job")
        first = receiver.receive()
        assert len(first) == 1
        # Hidden while in flight
        assert receiver.receive() == []
        # Expire visibility now, as if the timeout had elapsed
        receiver.change_visibility(first[0].receipt_handle, 0)
        second = receiver.receive()
        assert len(second) == 1
        assert second[0].body == "job"
        assert second[0].receive_count == 2

    def test_wait_time_clamped(self, sqs_queue):
        receiver = SQSQueueReceiver(sqs_queue, region_name="us-east-1", wait_time_seconds=90)
        assert receiver._wait_time_seconds == 20
