"""
FFmpeg-based transcoding: probe, normalized conversion, preview clip, thumbnail.

All operations run ffmpeg/ffprobe as subprocesses against local files and either
return the output path or raise TranscodeError with the tail of the engine's stderr.

Normalized output: H.264 main profile, yuv420p, even dimensions, +faststart, CRF 23,
no audio. Preview: first min(D/2, 30) seconds, width <= 1280, faster preset, CRF 28,
no audio. Thumbnail: one JPEG frame at the video's midpoint.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from resource_media_shared import MediaProbe

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_MAX_SECONDS = 30.0
DEFAULT_PREVIEW_MAX_WIDTH = 1280
DEFAULT_THUMBNAIL_WIDTH = 1280
DEFAULT_FFMPEG_TIMEOUT_SEC = 1800
DEFAULT_FFPROBE_TIMEOUT_SEC = 60

_STDERR_TAIL_CHARS = 2000

ProgressObserver = Callable[[float], None]


class TranscodeError(RuntimeError):
    """An ffmpeg/ffprobe invocation failed or produced no usable output."""

    def __init__(self, operation: str, message: str, *, stderr: str = "") -> None:
        self.operation = operation
        self.stderr_tail = (stderr or "").strip()[-_STDERR_TAIL_CHARS:]
        detail = f"{operation} failed: {message}"
        if self.stderr_tail:
            detail = f"{detail}\n{self.stderr_tail}"
        super().__init__(detail)


class ProbeError(TranscodeError):
    """The container could not be read or holds no video stream."""


def detect_binary(name: str, configured: str = "") -> str:
    """Return the configured path, else the binary found on PATH, else the bare name."""
    if configured:
        return configured
    found = shutil.which(name)
    if found is None:
        logger.warning("transcoder: %s not found on PATH", name)
        return name
    return found


def preview_duration_seconds(
    source_duration: float | None,
    max_seconds: float = DEFAULT_PREVIEW_MAX_SECONDS,
) -> float:
    """min(D/2, max_seconds); max_seconds when the duration is unknown or not positive."""
    if source_duration is None or source_duration <= 0:
        return max_seconds
    return min(source_duration / 2, max_seconds)


def thumbnail_timestamp(duration: float | None) -> float:
    """Temporal midpoint of the video; 0 when the duration is unknown."""
    if duration is None or duration <= 0:
        return 0.0
    return duration / 2


def parse_frame_rate(value: Any) -> float | None:
    """Parse ffprobe rates like '30000/1001' or '25'. None for '0/0', empty, or garbage."""
    if not value or not isinstance(value, str):
        return None
    num, _, den = value.partition("/")
    try:
        rate = float(num) / float(den) if den else float(num)
    except (ValueError, ZeroDivisionError):
        return None
    if rate <= 0:
        return None
    return round(rate, 3)


def _parse_duration(value: Any) -> float | None:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    return duration if duration >= 0 else None


def parse_probe_output(data: dict[str, Any]) -> MediaProbe:
    """
    Build MediaProbe from `ffprobe -show_format -show_streams -of json` output.

    Only the first video stream's dimensions are required; duration, frame rate,
    color space and audio codec are None when ffprobe does not report them.
    """
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video is None:
        raise ProbeError("probe", "no video stream found")
    try:
        width = int(video.get("width") or 0)
        height = int(video.get("height") or 0)
    except (TypeError, ValueError):
        width = height = 0
    if width <= 0 or height <= 0:
        raise ProbeError("probe", "video stream has no dimensions")

    fmt = data.get("format") or {}
    duration = _parse_duration(fmt.get("duration"))
    if duration is None:
        duration = _parse_duration(video.get("duration"))

    frame_rate = parse_frame_rate(video.get("avg_frame_rate"))
    if frame_rate is None:
        frame_rate = parse_frame_rate(video.get("r_frame_rate"))

    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)
    return MediaProbe(
        width=width,
        height=height,
        duration_seconds=duration,
        frame_rate=frame_rate,
        video_codec=video.get("codec_name") or "unknown",
        color_space=video.get("color_space") or None,
        audio_codec=(audio.get("codec_name") or None) if audio else None,
    )


def _progress_percent(line: str, duration: float | None) -> float | None:
    """Map one `-progress` key=value line to a percentage, if it carries progress."""
    key, _, value = line.strip().partition("=")
    if key == "progress" and value == "end":
        return 100.0
    if key not in ("out_time_us", "out_time_ms") or not duration or duration <= 0:
        return None
    try:
        # out_time_ms is also microseconds despite its name
        seconds = int(value) / 1_000_000
    except ValueError:
        return None
    return max(0.0, min(100.0, seconds / duration * 100))


class FFmpegTranscoder:
    """Runs the four media operations with ffmpeg/ffprobe."""

    def __init__(
        self,
        *,
        ffmpeg_path: str = "",
        ffprobe_path: str = "",
        ffmpeg_timeout: int = DEFAULT_FFMPEG_TIMEOUT_SEC,
        ffprobe_timeout: int = DEFAULT_FFPROBE_TIMEOUT_SEC,
        preview_max_seconds: float = DEFAULT_PREVIEW_MAX_SECONDS,
        preview_max_width: int = DEFAULT_PREVIEW_MAX_WIDTH,
        thumbnail_width: int = DEFAULT_THUMBNAIL_WIDTH,
    ) -> None:
        self.ffmpeg_path = detect_binary("ffmpeg", ffmpeg_path)
        self.ffprobe_path = detect_binary("ffprobe", ffprobe_path)
        self._ffmpeg_timeout = ffmpeg_timeout
        self._ffprobe_timeout = ffprobe_timeout
        self.preview_max_seconds = preview_max_seconds
        self.preview_max_width = preview_max_width
        self.thumbnail_width = thumbnail_width

    # --- probe ---

    def probe(self, input_path: str | Path) -> MediaProbe:
        """Read technical metadata. Raises ProbeError if the container is unreadable."""
        cmd = [
            self.ffprobe_path,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            str(input_path),
        ]
        result = self._run(cmd, "probe", self._ffprobe_timeout, error_cls=ProbeError)
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeError("probe", "ffprobe returned invalid JSON") from e
        return parse_probe_output(data)

    def probe_duration(self, input_path: str | Path) -> float | None:
        return self.probe(input_path).duration_seconds

    # --- encodes ---

    def convert_to_normalized(
        self,
        input_path: str | Path,
        output_path: str | Path,
        *,
        duration: float | None = None,
        on_progress: ProgressObserver | None = None,
    ) -> Path:
        """Re-encode to the streaming-ready normalized mp4 (silent)."""
        args = [
            "-i",
            str(input_path),
            "-map",
            "0:v:0",
            "-vf",
            "scale=trunc(iw/2)*2:trunc(ih/2)*2",
            "-c:v",
            "libx264",
            "-preset",
            "fast",
            "-profile:v",
            "main",
            "-pix_fmt",
            "yuv420p",
            "-crf",
            "23",
            "-movflags",
            "+faststart",
            "-an",
            str(output_path),
        ]
        self._run_ffmpeg(args, "convert", duration=duration, on_progress=on_progress)
        return _require_output(output_path, "convert")

    def generate_preview(
        self,
        input_path: str | Path,
        output_path: str | Path,
        source_duration: float | None,
        *,
        on_progress: ProgressObserver | None = None,
    ) -> Path:
        """Encode the first min(D/2, cap) seconds at width <= preview_max_width (silent)."""
        length = preview_duration_seconds(source_duration, self.preview_max_seconds)
        args = [
            "-i",
            str(input_path),
            "-t",
            f"{length:.3f}",
            "-map",
            "0:v:0",
            "-vf",
            f"scale='min({self.preview_max_width},iw)':-2",
            "-c:v",
            "libx264",
            "-preset",
            "veryfast",
            "-profile:v",
            "main",
            "-pix_fmt",
            "yuv420p",
            "-crf",
            "28",
            "-movflags",
            "+faststart",
            "-an",
            str(output_path),
        ]
        logger.debug("transcoder: preview length=%.3fs", length)
        self._run_ffmpeg(args, "preview", duration=length, on_progress=on_progress)
        return _require_output(output_path, "preview")

    def extract_thumbnail(
        self,
        input_path: str | Path,
        output_path: str | Path,
        *,
        fallback_duration: float | None = None,
    ) -> Path:
        """
        Write one JPEG frame from the midpoint of input_path.

        The midpoint comes from probing input_path itself; if that fails or reports
        no duration, fallback_duration is used, then the first frame.
        """
        duration: float | None = None
        try:
            duration = self.probe_duration(input_path)
        except TranscodeError as e:
            logger.debug("transcoder: thumbnail probe failed, using fallback duration: %s", e)
        if duration is None:
            duration = fallback_duration
        timestamp = thumbnail_timestamp(duration)
        args = [
            "-ss",
            f"{timestamp:.3f}",
            "-i",
            str(input_path),
            "-frames:v",
            "1",
            "-vf",
            f"scale='min({self.thumbnail_width},iw)':-2",
            "-q:v",
            "2",
            str(output_path),
        ]
        self._run_ffmpeg(args, "thumbnail")
        return _require_output(output_path, "thumbnail")

    # --- subprocess plumbing ---

    def _run(
        self,
        cmd: list[str],
        operation: str,
        timeout: int,
        *,
        error_cls: type[TranscodeError] = TranscodeError,
    ) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.CalledProcessError as e:
            raise error_cls(operation, f"exit code {e.returncode}", stderr=e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(operation, f"timed out after {timeout}s") from e
        except OSError as e:
            raise error_cls(operation, f"cannot run {cmd[0]}: {e}") from e

    def _run_ffmpeg(
        self,
        args: list[str],
        operation: str,
        *,
        duration: float | None = None,
        on_progress: ProgressObserver | None = None,
    ) -> None:
        cmd = [self.ffmpeg_path, "-hide_banner", "-nostdin", "-y", "-loglevel", "error"]
        if on_progress is None:
            self._run([*cmd, *args], operation, self._ffmpeg_timeout)
            return
        cmd = [*cmd, "-nostats", "-progress", "pipe:1", *args]
        self._run_with_progress(cmd, operation, duration, on_progress)

    def _run_with_progress(
        self,
        cmd: list[str],
        operation: str,
        duration: float | None,
        on_progress: ProgressObserver,
    ) -> None:
        """Run ffmpeg, feeding `-progress pipe:1` updates to on_progress until it exits."""
        timed_out = threading.Event()
        # stderr goes to a file so a chatty encoder can never block on a full pipe
        with tempfile.TemporaryFile(mode="w+", errors="replace") as stderr_file:
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    text=True,
                    errors="replace",
                )
            except OSError as e:
                raise TranscodeError(operation, f"cannot run {cmd[0]}: {e}") from e

            def _kill() -> None:
                timed_out.set()
                proc.kill()

            timer = threading.Timer(self._ffmpeg_timeout, _kill)
            timer.daemon = True
            timer.start()
            try:
                for line in proc.stdout:
                    percent = _progress_percent(line, duration)
                    if percent is not None:
                        _notify(on_progress, operation, percent)
                returncode = proc.wait()
            finally:
                timer.cancel()
                proc.stdout.close()
            if timed_out.is_set():
                raise TranscodeError(operation, f"timed out after {self._ffmpeg_timeout}s")
            if returncode != 0:
                stderr_file.seek(0)
                raise TranscodeError(
                    operation, f"exit code {returncode}", stderr=stderr_file.read()
                )


def _notify(on_progress: ProgressObserver, operation: str, percent: float) -> None:
    try:
        on_progress(percent)
    except Exception as e:
        logger.warning("transcoder: %s progress observer failed: %s", operation, e)


def _require_output(output_path: str | Path, operation: str) -> Path:
    path = Path(output_path)
    if not path.is_file() or path.stat().st_size == 0:
        raise TranscodeError(operation, f"no output written to {path.name}")
    return path
