"""
Entrypoint for the transcode worker. Wires AWS adapters and the catalog from env and
runs the transcode loop in this process, one job at a time. Scale out by running
more processes against the same queue.
"""

import logging
import signal
import threading

from resource_media_aws_adapters.env_config import (
    media_bucket_name,
    object_storage_from_env,
    resource_catalog_from_env,
    sqs_visibility_timeout_seconds,
    transcode_queue_receiver_from_env,
)
from resource_media_shared import configure_logging
from resource_media_shared.interfaces import ResourceCatalog

from .catalog_http import PostgrestResourceCatalog
from .config import TranscodeWorkerSettings, bootstrap_env, get_settings
from .listener import run_transcode_loop
from .pipeline import TranscodePipeline
from .transcoder import FFmpegTranscoder

logger = logging.getLogger(__name__)


def build_catalog(settings: TranscodeWorkerSettings) -> ResourceCatalog:
    """Catalog backend selected by CATALOG_BACKEND."""
    if settings.catalog_backend == "dynamodb":
        return resource_catalog_from_env()
    return PostgrestResourceCatalog(
        settings.catalog_api_url,
        settings.catalog_api_key,
        table=settings.catalog_resource_table,
        timeout=settings.catalog_timeout_sec,
    )


def build_transcoder(settings: TranscodeWorkerSettings) -> FFmpegTranscoder:
    return FFmpegTranscoder(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        ffmpeg_timeout=settings.ffmpeg_timeout_sec,
        ffprobe_timeout=settings.ffprobe_timeout_sec,
        preview_max_seconds=settings.preview_max_seconds,
        preview_max_width=settings.preview_max_width,
        thumbnail_width=settings.thumbnail_width,
    )


def build_pipeline(settings: TranscodeWorkerSettings) -> TranscodePipeline:
    return TranscodePipeline(
        object_storage_from_env(),
        media_bucket_name(),
        build_transcoder(settings),
        build_catalog(settings),
        scratch_dir=settings.scratch_dir or None,
        rollback_on_failure=settings.rollback_on_failure,
        log_progress=settings.log_progress,
    )


def effective_heartbeat_interval(interval_sec: float, visibility_timeout_sec: int) -> float:
    """Heartbeat interval that renews visibility before it lapses; 0 keeps it disabled."""
    if interval_sec <= 0 or interval_sec < visibility_timeout_sec:
        return interval_sec
    clamped = visibility_timeout_sec / 2
    logger.warning(
        "transcode-worker: VISIBILITY_HEARTBEAT_SEC=%s is not below the visibility timeout "
        "%ss; using %ss",
        interval_sec,
        visibility_timeout_sec,
        clamped,
    )
    return clamped


def install_signal_handlers(stop_event: threading.Event) -> None:
    """SIGTERM/SIGINT stop the loop after the job in flight finishes."""

    def _handle(signum, frame) -> None:
        logger.info(
            "transcode-worker: received %s, stopping after current job",
            signal.Signals(signum).name,
        )
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def main() -> None:
    bootstrap_env()
    settings = get_settings()
    configure_logging(settings.log_level)
    visibility_timeout = sqs_visibility_timeout_seconds()
    heartbeat = effective_heartbeat_interval(settings.visibility_heartbeat_sec, visibility_timeout)
    logger.info(
        "transcode-worker starting; bucket=%s catalog=%s visibility_timeout=%ss heartbeat=%ss",
        media_bucket_name(),
        settings.catalog_backend,
        visibility_timeout,
        heartbeat,
    )
    receiver = transcode_queue_receiver_from_env()
    pipeline = build_pipeline(settings)

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    run_transcode_loop(
        receiver,
        pipeline,
        poll_interval_sec=settings.poll_interval_sec,
        ack_when_source_missing=settings.ack_when_source_missing,
        visibility_timeout_sec=visibility_timeout,
        heartbeat_interval_sec=heartbeat,
        stop_event=stop_event,
    )


if __name__ == "__main__":
    main()
