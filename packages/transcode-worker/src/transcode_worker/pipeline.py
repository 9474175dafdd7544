"""
Per-job transcode pipeline: download, probe, convert, preview, thumbnail, catalog, reclaim.

States are strictly sequential; each is reached only if the previous one succeeded:

    RECEIVED -> DOWNLOADED -> PROBED -> CONVERTED -> PREVIEW_ATTEMPTED
      -> THUMBNAIL_ATTEMPTED -> CATALOG_UPDATED -> SOURCE_RECLAIMED -> (ACKNOWLEDGED)

Download, probe, conversion (with its upload) and the catalog patch are fatal:
they raise JobAbortedError and the queue message is left for redelivery. Preview
and thumbnail are best-effort and only drop their artifact. The source object is
deleted only after the catalog patch is applied, and a failed delete is logged only.
ACKNOWLEDGED is reached by the listener when it deletes the queue message.

Every attempt uploads under fresh keys, so a redelivered job never depends on what
an earlier attempt left behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from resource_media_shared import (
    Artifact,
    ArtifactKind,
    CatalogPatch,
    MediaProbe,
    ObjectNotFoundError,
    TranscodeJob,
    build_converted_key,
    build_preview_key,
    build_thumbnail_key,
    file_extension,
)
from resource_media_shared.interfaces import ObjectStorage, ResourceCatalog

from .scratch import ScratchSpace
from .transcoder import FFmpegTranscoder

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPE = "video/mp4"
THUMBNAIL_CONTENT_TYPE = "image/jpeg"

# Log encoder progress in steps of this many percent
_PROGRESS_LOG_STEP = 10.0


class PipelineState(str, Enum):
    RECEIVED = "received"
    DOWNLOADED = "downloaded"
    PROBED = "probed"
    CONVERTED = "converted"
    PREVIEW_ATTEMPTED = "preview_attempted"
    THUMBNAIL_ATTEMPTED = "thumbnail_attempted"
    CATALOG_UPDATED = "catalog_updated"
    SOURCE_RECLAIMED = "source_reclaimed"
    ACKNOWLEDGED = "acknowledged"


class JobAbortedError(RuntimeError):
    """A fatal stage failed; `state` is the last state the job reached."""

    def __init__(self, resource_id: str, state: PipelineState, message: str) -> None:
        self.resource_id = resource_id
        self.state = state
        super().__init__(f"resource_id={resource_id} aborted after {state.value}: {message}")


class SourceMissingError(JobAbortedError):
    """The source object no longer exists in the store."""


class PipelineResult(BaseModel):
    """Outcome of a completed run (everything up to, not including, acknowledgment)."""

    resource_id: str
    state: PipelineState
    converted_key: str
    preview_key: str | None = None
    thumbnail_key: str | None = None
    source_deleted: bool = False
    probe: MediaProbe
    patch: CatalogPatch


class _ProgressLogger:
    """Progress observer that logs every _PROGRESS_LOG_STEP percent."""

    def __init__(self, resource_id: str, stage: str) -> None:
        self._resource_id = resource_id
        self._stage = stage
        self._next = _PROGRESS_LOG_STEP

    def __call__(self, percent: float) -> None:
        if percent < self._next:
            return
        logger.info(
            "transcode: resource_id=%s %s progress=%.0f%%",
            self._resource_id,
            self._stage,
            percent,
        )
        while self._next <= percent:
            self._next += _PROGRESS_LOG_STEP


class TranscodePipeline:
    """
    Runs one job end to end. Collaborators are injected so tests can pass fakes:
    storage and bucket (source + artifacts), transcoder, and the resource catalog.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        bucket: str,
        transcoder: FFmpegTranscoder,
        catalog: ResourceCatalog,
        *,
        scratch_dir: str | None = None,
        rollback_on_failure: bool = True,
        log_progress: bool = False,
    ) -> None:
        self._storage = storage
        self._bucket = bucket
        self._transcoder = transcoder
        self._catalog = catalog
        self._scratch_dir = scratch_dir or None
        self._rollback_on_failure = rollback_on_failure
        self._log_progress = log_progress

    def run(self, job: TranscodeJob) -> PipelineResult:
        """
        Process the job. Returns the result once the source has been reclaimed
        (or its delete failed and was logged). Raises JobAbortedError on fatal failure.
        Local files are always removed before returning or raising.
        """
        logger.info(
            "transcode: resource_id=%s start key=%s receive_count=%s",
            job.resource_id,
            job.source_key,
            job.receive_count,
        )
        uploaded: list[Artifact] = []
        with ScratchSpace(job.resource_id, base_dir=self._scratch_dir) as scratch:
            try:
                return self._run_stages(job, scratch, uploaded)
            except JobAbortedError:
                if self._rollback_on_failure:
                    self._rollback(job, uploaded)
                raise

    def _run_stages(
        self, job: TranscodeJob, scratch: ScratchSpace, uploaded: list[Artifact]
    ) -> PipelineResult:
        state = PipelineState.RECEIVED
        source_path = scratch.path_for("source", file_extension(job.original_file_name))
        self._download_source(job, source_path, state)
        state = PipelineState.DOWNLOADED
        logger.info("transcode: resource_id=%s state=%s", job.resource_id, state.value)

        try:
            probe = self._transcoder.probe(source_path)
        except Exception as e:
            raise JobAbortedError(job.resource_id, state, f"probe failed: {e}") from e
        state = PipelineState.PROBED
        logger.info(
            "transcode: resource_id=%s state=%s %sx%s duration=%s codec=%s",
            job.resource_id,
            state.value,
            probe.width,
            probe.height,
            probe.duration_seconds,
            probe.video_codec,
        )

        try:
            converted = self._convert_and_upload(job, scratch, source_path, probe)
        except Exception as e:
            raise JobAbortedError(job.resource_id, state, f"conversion failed: {e}") from e
        uploaded.append(converted)
        state = PipelineState.CONVERTED
        logger.info(
            "transcode: resource_id=%s state=%s key=%s",
            job.resource_id,
            state.value,
            converted.storage_key,
        )

        preview = self._attempt_preview(job, scratch, Path(converted.local_path), probe)
        if preview is not None:
            uploaded.append(preview)
        state = PipelineState.PREVIEW_ATTEMPTED

        thumbnail = self._attempt_thumbnail(job, scratch, Path(converted.local_path), probe)
        if thumbnail is not None:
            uploaded.append(thumbnail)
        state = PipelineState.THUMBNAIL_ATTEMPTED

        patch = CatalogPatch.build(
            converted.storage_key,
            probe,
            preview_key=preview.storage_key if preview else None,
            thumbnail_key=thumbnail.storage_key if thumbnail else None,
        )
        try:
            self._catalog.apply_patch(job.resource_id, patch)
        except Exception as e:
            raise JobAbortedError(job.resource_id, state, f"catalog update failed: {e}") from e
        state = PipelineState.CATALOG_UPDATED
        logger.info(
            "transcode: resource_id=%s state=%s fields=%s",
            job.resource_id,
            state.value,
            ",".join(sorted(patch.to_fields())),
        )

        source_deleted = self._reclaim_source(job)
        state = PipelineState.SOURCE_RECLAIMED
        return PipelineResult(
            resource_id=job.resource_id,
            state=state,
            converted_key=converted.storage_key,
            preview_key=preview.storage_key if preview else None,
            thumbnail_key=thumbnail.storage_key if thumbnail else None,
            source_deleted=source_deleted,
            probe=probe,
            patch=patch,
        )

    # --- stages ---

    def _download_source(
        self, job: TranscodeJob, source_path: Path, state: PipelineState
    ) -> None:
        try:
            self._storage.download_file(self._bucket, job.source_key, str(source_path))
        except ObjectNotFoundError as e:
            raise SourceMissingError(
                job.resource_id, state, f"source s3://{self._bucket}/{job.source_key} not found"
            ) from e
        except Exception as e:
            raise JobAbortedError(job.resource_id, state, f"download failed: {e}") from e

    def _convert_and_upload(
        self,
        job: TranscodeJob,
        scratch: ScratchSpace,
        source_path: Path,
        probe: MediaProbe,
    ) -> Artifact:
        output = scratch.path_for("converted", "mp4")
        self._transcoder.convert_to_normalized(
            source_path,
            output,
            duration=probe.duration_seconds,
            on_progress=self._progress(job, "convert"),
        )
        return self._upload(
            ArtifactKind.CONVERTED, build_converted_key(job.owner_id), output, VIDEO_CONTENT_TYPE
        )

    def _attempt_preview(
        self,
        job: TranscodeJob,
        scratch: ScratchSpace,
        converted_path: Path,
        probe: MediaProbe,
    ) -> Artifact | None:
        try:
            output = scratch.path_for("preview", "mp4")
            self._transcoder.generate_preview(
                converted_path,
                output,
                probe.duration_seconds,
                on_progress=self._progress(job, "preview"),
            )
            artifact = self._upload(
                ArtifactKind.PREVIEW, build_preview_key(job.owner_id), output, VIDEO_CONTENT_TYPE
            )
        except Exception as e:
            logger.warning(
                "transcode: resource_id=%s preview skipped: %s", job.resource_id, e
            )
            return None
        logger.info(
            "transcode: resource_id=%s preview key=%s", job.resource_id, artifact.storage_key
        )
        return artifact

    def _attempt_thumbnail(
        self,
        job: TranscodeJob,
        scratch: ScratchSpace,
        converted_path: Path,
        probe: MediaProbe,
    ) -> Artifact | None:
        try:
            output = scratch.path_for("thumbnail", "jpg")
            self._transcoder.extract_thumbnail(
                converted_path,
                output,
                fallback_duration=probe.duration_seconds,
            )
            artifact = self._upload(
                ArtifactKind.THUMBNAIL,
                build_thumbnail_key(job.owner_id),
                output,
                THUMBNAIL_CONTENT_TYPE,
            )
        except Exception as e:
            logger.warning(
                "transcode: resource_id=%s thumbnail skipped: %s", job.resource_id, e
            )
            return None
        logger.info(
            "transcode: resource_id=%s thumbnail key=%s", job.resource_id, artifact.storage_key
        )
        return artifact

    def _reclaim_source(self, job: TranscodeJob) -> bool:
        """Delete the original upload; a failure leaves an orphan and is logged only."""
        try:
            self._storage.delete(self._bucket, job.source_key)
        except Exception as e:
            logger.warning(
                "transcode: resource_id=%s source delete failed key=%s: %s",
                job.resource_id,
                job.source_key,
                e,
            )
            return False
        logger.info(
            "transcode: resource_id=%s state=%s key=%s",
            job.resource_id,
            PipelineState.SOURCE_RECLAIMED.value,
            job.source_key,
        )
        return True

    def _rollback(self, job: TranscodeJob, uploaded: list[Artifact]) -> None:
        """Best-effort delete of artifacts this attempt uploaded; the retry makes new ones."""
        for artifact in uploaded:
            try:
                self._storage.delete(self._bucket, artifact.storage_key)
                logger.info(
                    "transcode: resource_id=%s rolled back %s key=%s",
                    job.resource_id,
                    artifact.kind.value,
                    artifact.storage_key,
                )
            except Exception as e:
                logger.warning(
                    "transcode: resource_id=%s rollback of %s key=%s failed: %s",
                    job.resource_id,
                    artifact.kind.value,
                    artifact.storage_key,
                    e,
                )

    # --- helpers ---

    def _upload(self, kind: ArtifactKind, key: str, path: Path, content_type: str) -> Artifact:
        self._storage.upload_file(self._bucket, key, str(path), content_type=content_type)
        return Artifact(kind=kind, storage_key=key, local_path=str(path), content_type=content_type)

    def _progress(self, job: TranscodeJob, stage: str) -> Callable[[float], None] | None:
        if not self._log_progress:
            return None
        return _ProgressLogger(job.resource_id, stage)
