"""
Transcode queue listener: one message in flight, acknowledge only on full success.

There is no retry loop here. Anything that goes wrong leaves the message
unacknowledged and the queue redelivers it once the visibility timeout elapses.
"""

import logging
import threading
import time

from resource_media_shared import TranscodeJob
from resource_media_shared.interfaces import QueueMessage, QueueReceiver

from .job_message import parse_job_message, resource_id_for_logging
from .pipeline import JobAbortedError, PipelineState, SourceMissingError, TranscodePipeline
from .visibility import VisibilityHeartbeat

logger = logging.getLogger(__name__)

DEFAULT_VISIBILITY_TIMEOUT_SEC = 300
DEFAULT_HEARTBEAT_INTERVAL_SEC = 60


def _reject_malformed(message: QueueMessage) -> None:
    logger.warning(
        "transcode: resource_id=%s invalid message body (message_id=%s receive_count=%s); "
        "not acknowledged",
        resource_id_for_logging(message.body),
        message.message_id,
        message.receive_count,
    )


def receive_next(receiver: QueueReceiver) -> TranscodeJob | None:
    """
    Long-poll for one message and return it as a job.

    None when the poll timed out empty, or when the message was malformed; a
    malformed message is left unacknowledged (the queue's redrive policy
    dead-letters it after repeated receives).
    """
    messages = receiver.receive(max_messages=1)
    if not messages:
        return None
    message = messages[0]
    job = parse_job_message(message)
    if job is None:
        _reject_malformed(message)
    return job


def acknowledge(receiver: QueueReceiver, job: TranscodeJob) -> None:
    """Delete the message; the job is permanently consumed."""
    receiver.delete(job.delivery_token)


def process_one_transcode_job(
    job: TranscodeJob,
    pipeline: TranscodePipeline,
    receiver: QueueReceiver,
    *,
    ack_when_source_missing: bool = True,
    visibility_timeout_sec: int = DEFAULT_VISIBILITY_TIMEOUT_SEC,
    heartbeat_interval_sec: float = DEFAULT_HEARTBEAT_INTERVAL_SEC,
) -> bool:
    """
    Run the pipeline for one job and acknowledge it on success.

    Returns True if the message was acknowledged, False if it was left for redelivery.
    """
    try:
        with VisibilityHeartbeat(
            receiver,
            job.delivery_token,
            timeout_sec=visibility_timeout_sec,
            interval_sec=heartbeat_interval_sec,
            resource_id=job.resource_id,
        ):
            result = pipeline.run(job)
    except SourceMissingError as e:
        if not ack_when_source_missing:
            logger.warning("transcode: resource_id=%s %s; left for redelivery", job.resource_id, e)
            return False
        logger.warning(
            "transcode: resource_id=%s source missing (already processed or deleted); "
            "acknowledging: %s",
            job.resource_id,
            e,
        )
    except JobAbortedError as e:
        logger.exception(
            "transcode: resource_id=%s aborted after state=%s; left for redelivery",
            job.resource_id,
            e.state.value,
        )
        return False
    except Exception as e:
        logger.exception(
            "transcode: resource_id=%s failed unexpectedly; left for redelivery: %s",
            job.resource_id,
            e,
        )
        return False
    else:
        logger.info(
            "transcode: resource_id=%s complete file_url=%s preview=%s thumbnail=%s "
            "source_deleted=%s",
            job.resource_id,
            result.converted_key,
            result.preview_key,
            result.thumbnail_key,
            result.source_deleted,
        )

    try:
        acknowledge(receiver, job)
    except Exception as e:
        logger.exception(
            "transcode: resource_id=%s acknowledge failed: %s", job.resource_id, e
        )
        return False
    logger.info(
        "transcode: resource_id=%s state=%s", job.resource_id, PipelineState.ACKNOWLEDGED.value
    )
    return True


def process_one_transcode_message(
    message: QueueMessage,
    pipeline: TranscodePipeline,
    receiver: QueueReceiver,
    **kwargs,
) -> bool:
    """
    Parse a raw queue message and process it.

    Returns True if the message was acknowledged. Malformed messages return False
    and are never acknowledged.
    """
    job = parse_job_message(message)
    if job is None:
        _reject_malformed(message)
        return False
    return process_one_transcode_job(job, pipeline, receiver, **kwargs)


def run_transcode_loop(
    receiver: QueueReceiver,
    pipeline: TranscodePipeline,
    *,
    poll_interval_sec: float = 1.0,
    ack_when_source_missing: bool = True,
    visibility_timeout_sec: int = DEFAULT_VISIBILITY_TIMEOUT_SEC,
    heartbeat_interval_sec: float = DEFAULT_HEARTBEAT_INTERVAL_SEC,
    stop_event: threading.Event | None = None,
) -> None:
    """
    Long-running loop: receive one message, run it to completion, repeat.
    Returns when stop_event is set (checked between jobs).
    """
    stop = stop_event or threading.Event()
    logger.info("transcode loop started")
    while not stop.is_set():
        try:
            job = receive_next(receiver)
        except Exception as e:
            logger.exception("transcode: receive failed: %s", e)
            stop.wait(poll_interval_sec)
            continue
        if job is None:
            stop.wait(poll_interval_sec)
            continue
        started = time.monotonic()
        ok = process_one_transcode_job(
            job,
            pipeline,
            receiver,
            ack_when_source_missing=ack_when_source_missing,
            visibility_timeout_sec=visibility_timeout_sec,
            heartbeat_interval_sec=heartbeat_interval_sec,
        )
        logger.debug(
            "transcode: resource_id=%s acknowledged=%s elapsed=%.1fs",
            job.resource_id,
            ok,
            time.monotonic() - started,
        )
    logger.info("transcode loop stopped")
