"""In-memory fakes for ObjectStorage, ResourceCatalog, QueueReceiver and the transcoder."""

from pathlib import Path

import pytest
from resource_media_shared import CatalogPatch, MediaProbe, TranscodeJob
from resource_media_shared.interfaces import (
    CatalogUpdateError,
    ObjectNotFoundError,
    QueueMessage,
)

from transcode_worker.pipeline import TranscodePipeline
from transcode_worker.transcoder import ProbeError, TranscodeError, preview_duration_seconds

BUCKET = "media-bucket"


class InMemoryStorage:
    """ObjectStorage over a dict; upload/delete failures can be injected by key prefix."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str | None] = {}
        self.deleted: list[str] = []
        self.fail_upload_prefixes: set[str] = set()
        self.fail_delete_keys: set[str] = set()
        self.fail_download = False

    def presign_download(self, bucket: str, key: str, *, expires_in: int = 3600) -> str:
        return f"https://fake-s3/{bucket}/{key}?expires={expires_in}"

    def upload(self, bucket: str, key: str, body: bytes, *, content_type: str | None = None) -> None:
        if any(key.startswith(p) for p in self.fail_upload_prefixes):
            raise RuntimeError(f"upload refused for {key}")
        self.objects[(bucket, key)] = bytes(body)
        self.content_types[(bucket, key)] = content_type

    def upload_file(
        self, bucket: str, key: str, path: str, *, content_type: str | None = None
    ) -> None:
        self.upload(bucket, key, Path(path).read_bytes(), content_type=content_type)

    def download(self, bucket: str, key: str) -> bytes:
        if (bucket, key) not in self.objects:
            raise ObjectNotFoundError(bucket, key)
        return self.objects[(bucket, key)]

    def download_file(self, bucket: str, key: str, path: str) -> None:
        if self.fail_download:
            raise RuntimeError("store timeout")
        Path(path).write_bytes(self.download(bucket, key))

    def delete(self, bucket: str, key: str) -> None:
        if key in self.fail_delete_keys:
            raise RuntimeError(f"delete refused for {key}")
        self.objects.pop((bucket, key), None)
        self.deleted.append(key)

    def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for (_, k) in self.objects if k.startswith(prefix))


class RecordingCatalog:
    """ResourceCatalog that merges sparse patches into dict records."""

    def __init__(self, records: dict[str, dict] | None = None) -> None:
        self.records: dict[str, dict] = records if records is not None else {}
        self.patches: list[tuple[str, dict]] = []
        self.fail = False

    def apply_patch(self, resource_id: str, patch: CatalogPatch) -> None:
        if self.fail:
            raise CatalogUpdateError("catalog unavailable")
        if resource_id not in self.records:
            raise CatalogUpdateError(f"resource {resource_id!r} not found")
        fields = patch.to_fields()
        self.patches.append((resource_id, fields))
        self.records[resource_id].update(fields)


class FakeTranscoder:
    """Writes small placeholder files instead of running ffmpeg."""

    def __init__(self, probe: MediaProbe | None = None) -> None:
        self.probe_result = probe or MediaProbe(
            width=1920,
            height=1080,
            duration_seconds=40.0,
            frame_rate=29.97,
            video_codec="h264",
            color_space="bt709",
            audio_codec="aac",
        )
        self.fail: set[str] = set()
        self.touched_paths: list[Path] = []
        self.preview_lengths: list[float] = []
        self.thumbnail_inputs: list[Path] = []

    def _touch(self, path, content: bytes) -> Path:
        p = Path(path)
        p.write_bytes(content)
        self.touched_paths.append(p)
        return p

    def probe(self, input_path) -> MediaProbe:
        self.touched_paths.append(Path(input_path))
        if "probe" in self.fail:
            raise ProbeError("probe", "invalid data found when processing input")
        return self.probe_result

    def probe_duration(self, input_path) -> float | None:
        return self.probe_result.duration_seconds

    def convert_to_normalized(self, input_path, output_path, *, duration=None, on_progress=None):
        if "convert" in self.fail:
            raise TranscodeError("convert", "exit code 1", stderr="encoder exploded")
        if on_progress is not None:
            on_progress(50.0)
            on_progress(100.0)
        return self._touch(output_path, b"converted:" + Path(input_path).read_bytes())

    def generate_preview(self, input_path, output_path, source_duration, *, on_progress=None):
        if "preview" in self.fail:
            raise TranscodeError("preview", "exit code 1")
        self.preview_lengths.append(preview_duration_seconds(source_duration))
        return self._touch(output_path, b"preview")

    def extract_thumbnail(self, input_path, output_path, *, fallback_duration=None):
        if "thumbnail" in self.fail:
            raise TranscodeError("thumbnail", "exit code 1")
        self.thumbnail_inputs.append(Path(input_path))
        return self._touch(output_path, b"\xff\xd8jpeg")


class FakeReceiver:
    """QueueReceiver with a list of pending messages and a record of calls."""

    def __init__(self, messages: list[QueueMessage] | None = None) -> None:
        self.pending = list(messages or [])
        self.deleted: list[str] = []
        self.visibility_changes: list[tuple[str, int]] = []
        self.fail_delete = False

    def receive(self, max_messages: int = 1) -> list[QueueMessage]:
        batch, self.pending = self.pending[:max_messages], self.pending[max_messages:]
        return batch

    def delete(self, receipt_handle: str) -> None:
        if self.fail_delete:
            raise RuntimeError("queue unreachable")
        self.deleted.append(receipt_handle)

    def change_visibility(self, receipt_handle: str, timeout_seconds: int) -> None:
        self.visibility_changes.append((receipt_handle, timeout_seconds))


@pytest.fixture
def storage() -> InMemoryStorage:
    s = InMemoryStorage()
    s.upload(BUCKET, "resources/user-1/1700000000000-upload.mov", b"original-bytes")
    return s


@pytest.fixture
def catalog() -> RecordingCatalog:
    return RecordingCatalog({"res-1": {"id": "res-1", "title": "Beach", "preview_url": "old"}})


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def receiver_factory():
    return FakeReceiver


@pytest.fixture
def scratch_root(tmp_path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def pipeline(storage, transcoder, catalog, scratch_root) -> TranscodePipeline:
    return TranscodePipeline(
        storage,
        BUCKET,
        transcoder,
        catalog,
        scratch_dir=str(scratch_root),
    )


@pytest.fixture
def job() -> TranscodeJob:
    return TranscodeJob(
        resource_id="res-1",
        source_key="resources/user-1/1700000000000-upload.mov",
        owner_id="user-1",
        original_file_name="upload.MOV",
        declared_content_type="video/quicktime",
        delivery_token="receipt-1",
        message_id="msg-1",
    )


@pytest.fixture
def bucket() -> str:
    return BUCKET
