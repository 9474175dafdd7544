"""
Object key layout for transcode artifacts.

Single source of truth: the worker builds every artifact key through these
functions; the web app resolves keys to URLs (CDN or signed) on its side.

Converted video: resources/{owner_id}/{millis}-{rand}.mp4
Preview clip:    video-previews/{owner_id}/video-preview-{millis}-{rand}.mp4
Thumbnail:       thumbnails/{owner_id}/thumb-{millis}-{rand}.jpg

Each call returns a fresh key, so a redelivered job never writes over an
object that an earlier attempt may have published.
"""

import re
import secrets
import time

CONVERTED_KEY_PREFIX = "resources/"
PREVIEW_KEY_PREFIX = "video-previews/"
THUMBNAIL_KEY_PREFIX = "thumbnails/"

_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,10}$")


def _unique_suffix() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def owner_segment(owner_id: str) -> str:
    """Owner id as one key segment (surrounding whitespace and slashes stripped); ValueError if unusable."""
    owner = owner_id.strip().strip("/")
    if not owner or "/" in owner or owner in (".", ".."):
        raise ValueError(f"invalid owner id for object key: {owner_id!r}")
    return owner


def build_converted_key(owner_id: str) -> str:
    """Key for the normalized (converted) video."""
    return f"{CONVERTED_KEY_PREFIX}{owner_segment(owner_id)}/{_unique_suffix()}.mp4"


def build_preview_key(owner_id: str) -> str:
    """Key for the short preview clip."""
    return (
        f"{PREVIEW_KEY_PREFIX}{owner_segment(owner_id)}/"
        f"video-preview-{_unique_suffix()}.mp4"
    )


def build_thumbnail_key(owner_id: str) -> str:
    """Key for the still-frame thumbnail."""
    return f"{THUMBNAIL_KEY_PREFIX}{owner_segment(owner_id)}/thumb-{_unique_suffix()}.jpg"


def file_extension(file_name: str, default: str = "bin") -> str:
    """
    Lowercase extension of an uploaded file name, safe for use in a local path.

    Returns default when the name has no extension or it contains anything
    other than letters and digits.
    """
    base = file_name.rsplit("/", 1)[-1]
    if "." not in base:
        return default
    ext = base.rsplit(".", 1)[-1].lower()
    if not _EXTENSION_RE.match(ext):
        return default
    return ext
