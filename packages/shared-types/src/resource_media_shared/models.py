"""Pydantic models for transcode jobs, probe metadata, artifacts, and catalog patches."""

import math
import posixpath
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .keys import owner_segment

NORMALIZED_FILE_FORMAT = "mp4"


# --- Transcode queue (sent by web app, consumed by transcode-worker) ---

class TranscodeJobMessage(BaseModel):
    """
    Body of a transcode queue message.

    The web app sends camelCase JSON (resourceId, key, userId, fileName, contentType).
    Snake_case attribute names are accepted too, so tests and scripts can build it directly.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    resource_id: str = Field(..., alias="resourceId", min_length=1)
    key: str = Field(..., min_length=1, description="Object key of the uploaded original")
    user_id: str = Field(..., alias="userId", min_length=1)
    file_name: str | None = Field(None, alias="fileName")
    content_type: str | None = Field(None, alias="contentType")

    @field_validator("user_id")
    @classmethod
    def user_id_is_key_segment(cls, v: str) -> str:
        # Artifact keys use it as one path segment
        return owner_segment(v)

    @model_validator(mode="after")
    def default_file_name_from_key(self) -> "TranscodeJobMessage":
        if not self.file_name:
            self.file_name = posixpath.basename(self.key) or self.key
        return self


class TranscodeJob(BaseModel):
    """One unit of work derived from a single queue delivery."""

    resource_id: str
    source_key: str
    owner_id: str
    original_file_name: str
    declared_content_type: str | None = None
    delivery_token: str = Field(..., description="Receipt handle used to acknowledge the message")
    message_id: str | None = None
    receive_count: int = Field(1, ge=1, description="How many times the queue delivered it")

    @classmethod
    def from_message(
        cls,
        message: TranscodeJobMessage,
        delivery_token: str,
        *,
        message_id: str | None = None,
        receive_count: int = 1,
    ) -> "TranscodeJob":
        return cls(
            resource_id=message.resource_id,
            source_key=message.key,
            owner_id=message.user_id,
            original_file_name=message.file_name or message.key,
            declared_content_type=message.content_type,
            delivery_token=delivery_token,
            message_id=message_id,
            receive_count=max(1, receive_count),
        )


# --- Probe and artifacts ---

class MediaProbe(BaseModel):
    """Technical metadata read from the source video (ffprobe)."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    duration_seconds: float | None = Field(None, ge=0)
    frame_rate: float | None = Field(None, gt=0)
    video_codec: str
    color_space: str | None = None
    audio_codec: str | None = None


class ArtifactKind(str, Enum):
    """Artifacts produced per job; only CONVERTED is mandatory."""

    CONVERTED = "converted"
    PREVIEW = "preview"
    THUMBNAIL = "thumbnail"


class Artifact(BaseModel):
    """A derived file: where it lives locally and the key it was uploaded under."""

    kind: ArtifactKind
    storage_key: str
    local_path: str
    content_type: str


# --- Catalog ---

def round_half_up(value: float) -> int:
    """Round to the nearest whole number, halves away from zero (40.5 -> 41)."""
    return int(math.floor(value + 0.5))


class CatalogPatch(BaseModel):
    """
    Sparse update of a resource record. Fields left as None are never sent,
    so previously known values are not overwritten with null.
    """

    file_url: str = Field(..., min_length=1, description="Key of the converted video")
    preview_url: str | None = None
    thumbnail_url: str | None = None
    file_format: str = NORMALIZED_FILE_FORMAT
    width: int | None = None
    height: int | None = None
    duration: int | None = Field(None, description="Whole seconds")
    frame_rate: float | None = None
    video_encoding: str | None = None
    video_color_space: str | None = None
    video_audio_codec: str | None = None

    @classmethod
    def build(
        cls,
        converted_key: str,
        probe: MediaProbe,
        *,
        preview_key: str | None = None,
        thumbnail_key: str | None = None,
    ) -> "CatalogPatch":
        return cls(
            file_url=converted_key,
            preview_url=preview_key,
            thumbnail_url=thumbnail_key,
            width=probe.width,
            height=probe.height,
            duration=(
                round_half_up(probe.duration_seconds)
                if probe.duration_seconds is not None
                else None
            ),
            frame_rate=probe.frame_rate,
            video_encoding=probe.video_codec,
            video_color_space=probe.color_space,
            video_audio_codec=probe.audio_codec,
        )

    def to_fields(self) -> dict[str, Any]:
        """Fields with a produced value, keyed by catalog column name."""
        return self.model_dump(mode="json", exclude_none=True)
