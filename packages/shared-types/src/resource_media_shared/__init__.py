"""Shared types and conventions for the resource media transcoding pipeline."""

from .interfaces import (
    CatalogUpdateError,
    ObjectNotFoundError,
    ObjectStorage,
    QueueMessage,
    QueueReceiver,
    QueueSender,
    ResourceCatalog,
)
from .keys import (
    build_converted_key,
    build_preview_key,
    build_thumbnail_key,
    file_extension,
)
from .logging_config import configure_logging
from .models import (
    NORMALIZED_FILE_FORMAT,
    Artifact,
    ArtifactKind,
    CatalogPatch,
    MediaProbe,
    TranscodeJob,
    TranscodeJobMessage,
)

__version__ = "0.1.0"
__all__ = [
    "Artifact",
    "ArtifactKind",
    "CatalogPatch",
    "CatalogUpdateError",
    "MediaProbe",
    "NORMALIZED_FILE_FORMAT",
    "ObjectNotFoundError",
    "ObjectStorage",
    "QueueMessage",
    "QueueReceiver",
    "QueueSender",
    "ResourceCatalog",
    "TranscodeJob",
    "TranscodeJobMessage",
    "build_converted_key",
    "build_preview_key",
    "build_thumbnail_key",
    "configure_logging",
    "file_extension",
]
