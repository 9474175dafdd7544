"""Parse transcode queue messages into TranscodeJob instances."""

import json
import logging

from pydantic import ValidationError
from resource_media_shared import TranscodeJob, TranscodeJobMessage
from resource_media_shared.interfaces import QueueMessage

logger = logging.getLogger(__name__)


def _decode(body: str | bytes) -> str | None:
    if isinstance(body, bytes):
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return None
    return body


def parse_job_message(message: QueueMessage) -> TranscodeJob | None:
    """
    Validate the message body against the transcode message schema.

    Returns None for anything malformed (not JSON, not an object, missing or empty
    resourceId/key/userId). The delivery token is the message's receipt handle.
    """
    raw = _decode(message.body)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        parsed = TranscodeJobMessage.model_validate(data)
    except ValidationError as e:
        logger.debug("transcode: message rejected by schema: %s", e)
        return None
    return TranscodeJob.from_message(
        parsed,
        message.receipt_handle,
        message_id=message.message_id,
        receive_count=message.receive_count,
    )


def resource_id_for_logging(body: str | bytes) -> str:
    """Extract resourceId from a message body for logging; return '?' if not parseable."""
    raw = _decode(body)
    if raw is None:
        return "?"
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return "?"
    if not isinstance(data, dict):
        return "?"
    value = data.get("resourceId") or data.get("resource_id")
    return value if isinstance(value, str) and value else "?"
