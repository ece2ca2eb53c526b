"""Frame-counter driven recording of a timeline into an encoded clip.

The recorder owns a single drawing surface for the duration of a session.
Every tick it resolves the timeline entry active for the current frame
count, draws it onto the surface and hands the surface to a capture session
(an ``ffmpeg`` process reading PNG frames on stdin and streaming the encoded
container on stdout). Finalization is triggered purely by the frame counter.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from halloween_scare.models import EncodedArtifact, Timeline, blank_buffer, encode_png
from halloween_scare.progress import eta_string, progress_interval

DEFAULT_FPS = 30
DEFAULT_QUALITY = 23
READ_CHUNK_SIZE = 64 * 1024


class RecordingError(RuntimeError):
    """Raised when a recording session cannot complete."""


class CaptureError(RecordingError):
    """Raised when the capture session reports an encoding failure."""


class UnsupportedCodecError(RecordingError):
    """Raised when none of the preferred codecs is available."""


class RecorderState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CodecOption:
    """A container/codec combination the capture session can produce."""

    content_type: str
    extension: str
    encoder: str
    muxer: str
    codec_args: Tuple[str, ...]

    def build_args(self, quality: int) -> List[str]:
        return [arg.replace("{quality}", str(quality)) for arg in self.codec_args]


CODEC_OPTIONS: Dict[str, CodecOption] = {
    option.content_type: option
    for option in (
        CodecOption(
            content_type="video/mp4",
            extension="mp4",
            encoder="libx264",
            muxer="mp4",
            codec_args=(
                "-c:v",
                "libx264",
                "-crf",
                "{quality}",
                "-preset",
                "veryfast",
                "-pix_fmt",
                "yuv420p",
                "-movflags",
                "frag_keyframe+empty_moov",
            ),
        ),
        CodecOption(
            content_type="video/webm;codecs=vp9",
            extension="webm",
            encoder="libvpx-vp9",
            muxer="webm",
            codec_args=("-c:v", "libvpx-vp9", "-crf", "{quality}", "-b:v", "0", "-pix_fmt", "yuv420p"),
        ),
        CodecOption(
            content_type="video/webm;codecs=vp8",
            extension="webm",
            encoder="libvpx",
            muxer="webm",
            codec_args=("-c:v", "libvpx", "-crf", "{quality}", "-b:v", "1M", "-pix_fmt", "yuv420p"),
        ),
        CodecOption(
            content_type="image/gif",
            extension="gif",
            encoder="gif",
            muxer="gif",
            codec_args=("-c:v", "gif"),
        ),
    )
}

DEFAULT_CODEC_PREFERENCES: Tuple[str, ...] = tuple(CODEC_OPTIONS)


class CaptureSession(Protocol):
    def open(self) -> None: ...

    def write_frame(self, frame: np.ndarray) -> None: ...

    def stop(self) -> List[bytes]: ...

    def abort(self) -> None: ...


CaptureFactory = Callable[[CodecOption, int, int, int], CaptureSession]
EncoderProbe = Callable[[], FrozenSet[str]]


def _require_ffmpeg(ffmpeg_path: str) -> str:
    resolved = shutil.which(ffmpeg_path)
    if resolved is None:
        raise RecordingError(
            f"{ffmpeg_path} not found on PATH. Install ffmpeg with libx264/libvpx support."
        )
    return resolved


def probe_ffmpeg_encoders(ffmpeg_path: str = "ffmpeg") -> FrozenSet[str]:
    """Return the names of the video encoders compiled into ``ffmpeg``."""
    executable = _require_ffmpeg(ffmpeg_path)
    result = subprocess.run(
        [executable, "-hide_banner", "-encoders"],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise RecordingError(f"Failed to list ffmpeg encoders: {result.stderr.strip()}")

    encoders = set()
    for line in result.stdout.splitlines():
        parts = line.split()
        # Encoder rows look like " V....D libx264   libx264 H.264 ..."
        if len(parts) >= 2 and len(parts[0]) == 6 and parts[0][0] == "V":
            encoders.add(parts[1])
    return frozenset(encoders)


def select_codec(preferences: Sequence[str], available_encoders: FrozenSet[str]) -> CodecOption:
    """Bind the first preferred content type whose encoder is available."""
    for content_type in preferences:
        option = CODEC_OPTIONS.get(content_type)
        if option is None:
            continue
        if option.encoder in available_encoders:
            return option
    raise UnsupportedCodecError(
        f"None of the preferred codecs are supported: {', '.join(preferences) or '<none>'}"
    )


class FfmpegCaptureSession:
    """Pipe PNG frames into ffmpeg and collect the encoded stream from stdout."""

    def __init__(
        self,
        codec: CodecOption,
        width: int,
        height: int,
        fps: int,
        *,
        ffmpeg_path: str = "ffmpeg",
        quality: int = DEFAULT_QUALITY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.codec = codec
        self.width = width
        self.height = height
        self.fps = fps
        self.ffmpeg_path = ffmpeg_path
        self.quality = quality
        self.logger = logger or logging.getLogger(__name__)
        self._process: Optional[subprocess.Popen] = None
        self._chunks: List[bytes] = []
        self._stderr = bytearray()
        self._threads: List[threading.Thread] = []

    def build_command(self, executable: str) -> List[str]:
        even_width = self.width - (self.width % 2)
        even_height = self.height - (self.height % 2)
        if even_width <= 0 or even_height <= 0:
            raise CaptureError(f"Frame {self.width}x{self.height} is too small to encode")

        return [
            executable,
            "-y",
            "-loglevel",
            "error",
            "-f",
            "image2pipe",
            "-vcodec",
            "png",
            "-r",
            str(self.fps),
            "-i",
            "-",
            "-vf",
            f"crop={even_width}:{even_height}:0:0",
            *self.codec.build_args(self.quality),
            "-f",
            self.codec.muxer,
            "pipe:1",
        ]

    def _drain_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        while True:
            chunk = self._process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            self._chunks.append(chunk)

    def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        for line in self._process.stderr:
            self._stderr.extend(line)

    def open(self) -> None:
        executable = _require_ffmpeg(self.ffmpeg_path)
        cmd = self.build_command(executable)
        self.logger.debug("Starting capture: %s", " ".join(cmd))
        self._process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        self._threads = [
            threading.Thread(target=self._drain_stdout, name="capture-stdout", daemon=True),
            threading.Thread(target=self._drain_stderr, name="capture-stderr", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def _error_text(self) -> str:
        return self._stderr.decode("utf-8", errors="replace").strip()[-2000:]

    def write_frame(self, frame: np.ndarray) -> None:
        if self._process is None or self._process.stdin is None:
            raise CaptureError("Capture session is not open")
        try:
            self._process.stdin.write(encode_png(frame))
        except (BrokenPipeError, OSError) as exc:
            self._process.wait()
            for thread in self._threads:
                thread.join()
            raise CaptureError(f"Encoder stopped accepting frames: {self._error_text() or exc}") from exc

    def stop(self) -> List[bytes]:
        if self._process is None:
            raise CaptureError("Capture session is not open")
        if self._process.stdin is not None:
            try:
                self._process.stdin.close()
            except OSError:
                pass
        return_code = self._process.wait()
        for thread in self._threads:
            thread.join()
        if return_code != 0:
            raise CaptureError(f"ffmpeg exited with status {return_code}: {self._error_text()}")
        return list(self._chunks)

    def abort(self) -> None:
        if self._process is None or self._process.poll() is not None:
            return
        self._process.kill()
        self._process.wait()
        for thread in self._threads:
            thread.join()


class StreamRecorder:
    """Play a timeline frame by frame into a capture session."""

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        fps: int = DEFAULT_FPS,
        codec_preferences: Sequence[str] = DEFAULT_CODEC_PREFERENCES,
        ffmpeg_path: str = "ffmpeg",
        quality: int = DEFAULT_QUALITY,
        realtime: bool = False,
        encoder_probe: Optional[EncoderProbe] = None,
        capture_factory: Optional[CaptureFactory] = None,
        clock: Callable[[], float] = perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.fps = max(1, int(fps))
        self.codec_preferences = tuple(codec_preferences)
        self.ffmpeg_path = ffmpeg_path
        self.quality = quality
        self.realtime = realtime
        self._encoder_probe = encoder_probe or (lambda: probe_ffmpeg_encoders(self.ffmpeg_path))
        self._capture_factory = capture_factory or self._default_capture_factory
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._active = False
        self._state = RecorderState.IDLE
        self._state_history: List[RecorderState] = [RecorderState.IDLE]
        self._executor: Optional[ThreadPoolExecutor] = None
        self.frames_captured = 0

    # ------------------------------------------------------------------
    # State tracking
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def state_history(self) -> Tuple[RecorderState, ...]:
        """Transitions of the most recent session, starting with IDLE."""
        return tuple(self._state_history)

    def _transition(self, state: RecorderState) -> None:
        self.logger.debug("Recorder state %s -> %s", self._state.value, state.value)
        self._state = state
        self._state_history.append(state)

    def _begin_session(self) -> None:
        with self._lock:
            if self._active:
                raise RecordingError("A recording session is already active on this recorder")
            self._active = True
            self._state = RecorderState.IDLE
            self._state_history = [RecorderState.IDLE]
            self.frames_captured = 0

    def _end_session(self) -> None:
        with self._lock:
            self._active = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def select_codec(self) -> CodecOption:
        return select_codec(self.codec_preferences, self._encoder_probe())

    def record(self, timeline: Timeline) -> EncodedArtifact:
        """Record ``timeline`` synchronously and return the encoded artifact."""
        self._begin_session()
        return self._run_session(timeline)

    def start(self, timeline: Timeline) -> "Future[EncodedArtifact]":
        """Record ``timeline`` on a worker thread.

        The returned future resolves to the artifact, or raises the
        ``RecordingError`` that ended the session.
        """
        self._begin_session()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recorder")
        return self._executor.submit(self._run_session, timeline)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "StreamRecorder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Session internals
    # ------------------------------------------------------------------

    def _default_capture_factory(self, codec: CodecOption, width: int, height: int, fps: int) -> CaptureSession:
        return FfmpegCaptureSession(
            codec,
            width,
            height,
            fps,
            ffmpeg_path=self.ffmpeg_path,
            quality=self.quality,
            logger=self.logger,
        )

    def _run_session(self, timeline: Timeline) -> EncodedArtifact:
        capture: Optional[CaptureSession] = None
        try:
            if len(timeline) == 0:
                raise RecordingError("Cannot record an empty timeline")

            codec = self.select_codec()
            total_frames = timeline.total_frames(self.fps)
            self.logger.info(
                "Recording %s frames (%s entries, %s ms) at %s fps as %s",
                total_frames,
                len(timeline),
                timeline.total_duration_ms,
                self.fps,
                codec.content_type,
            )

            surface = blank_buffer(timeline.width, timeline.height)
            capture = self._capture_factory(codec, timeline.width, timeline.height, self.fps)
            capture.open()
            self._transition(RecorderState.RECORDING)

            self._draw_loop(timeline, surface, capture, total_frames)

            self._transition(RecorderState.FINALIZING)
            chunks = capture.stop()
            capture = None
            if not chunks:
                raise CaptureError("Capture session finished without producing encoded data")

            artifact = EncodedArtifact(
                data=b"".join(chunks),
                content_type=codec.content_type,
                extension=codec.extension,
                frame_count=self.frames_captured,
            )
            self._transition(RecorderState.DONE)
            self.logger.info(
                "Recording finished: %s frames, %s bytes (%s)",
                artifact.frame_count,
                len(artifact.data),
                artifact.content_type,
            )
            return artifact
        except Exception as exc:
            if capture is not None:
                capture.abort()
            self._transition(RecorderState.FAILED)
            self.logger.error("Recording failed: %s", exc)
            if isinstance(exc, RecordingError):
                raise
            raise RecordingError(f"Recording failed: {exc}") from exc
        finally:
            self._end_session()

    def _draw_loop(
        self,
        timeline: Timeline,
        surface: np.ndarray,
        capture: CaptureSession,
        total_frames: int,
    ) -> None:
        interval = progress_interval(total_frames)
        loop_start = self._clock()

        while self.frames_captured < total_frames:
            if self.realtime:
                delay = loop_start + self.frames_captured / float(self.fps) - self._clock()
                if delay > 0:
                    self._sleep(delay)

            entry = timeline.entry_for_frame(self.frames_captured, self.fps)
            entry.draw(surface)
            capture.write_frame(surface)
            self.frames_captured += 1

            if self.frames_captured % interval == 0 or self.frames_captured == total_frames:
                elapsed = self._clock() - loop_start
                self.logger.info(
                    "Capture progress: %s/%s frames (%0.1f%%, %s)",
                    self.frames_captured,
                    total_frames,
                    (self.frames_captured / total_frames) * 100.0,
                    eta_string(elapsed, self.frames_captured, total_frames),
                )


__all__ = [
    "CODEC_OPTIONS",
    "DEFAULT_CODEC_PREFERENCES",
    "CaptureError",
    "CaptureSession",
    "CodecOption",
    "FfmpegCaptureSession",
    "RecorderState",
    "RecordingError",
    "StreamRecorder",
    "UnsupportedCodecError",
    "probe_ffmpeg_encoders",
    "select_codec",
]
