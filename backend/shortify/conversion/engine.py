"""Transcoding engine backed by the ffmpeg binary.

The engine is shared by every job: it is initialized once, keeps a private
working directory as its working storage (files addressed by logical name),
and reports progress to whichever handler is currently registered.
"""
import logging
import re
import shutil
import subprocess
import tempfile
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Optional

from shortify.config import FFMPEG_BINARY, FFMPEG_TIMEOUT, WORK_DIR
from shortify.conversion.errors import ConversionError, EngineError

logger = logging.getLogger("shortify.engine")

ProgressHandler = Callable[[float], None]

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_OUT_TIME_RE = re.compile(r"^out_time_us=(\d+)$")
# key=value lines written by -progress; everything else is regular log output
_PROGRESS_LINE_RE = re.compile(r"^[a-z0-9_]+=\S*$")


def parse_timestamp(value: str) -> Optional[float]:
    """Parse ``HH:MM:SS[.ms]``, ``MM:SS`` or plain seconds into seconds."""
    parts = (value or "").strip().split(":")
    if not parts or len(parts) > 3:
        return None
    try:
        seconds = 0.0
        for part in parts:
            seconds = seconds * 60 + float(part)
    except ValueError:
        return None
    return seconds


def parse_duration_line(line: str) -> Optional[float]:
    m = _DURATION_RE.search(line)
    if not m:
        return None
    hours, minutes, seconds = m.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_out_time_line(line: str) -> Optional[float]:
    m = _OUT_TIME_RE.match(line)
    if not m:
        return None
    return int(m.group(1)) / 1_000_000


def trim_seconds(argv: list[str]) -> Optional[float]:
    """Value of the ``-t`` option in argv, in seconds."""
    for i, arg in enumerate(argv[:-1]):
        if arg == "-t":
            return parse_timestamp(argv[i + 1])
    return None


class FfmpegEngine:
    """ffmpeg wrapper exposing the init / stage / invoke / retrieve lifecycle."""

    def __init__(
        self,
        binary: str = FFMPEG_BINARY,
        work_root: Path = WORK_DIR,
        timeout: int = FFMPEG_TIMEOUT,
    ):
        self.binary = binary
        self.work_root = Path(work_root)
        self.timeout = timeout
        self._executable: Optional[str] = None
        self._work_dir: Optional[Path] = None
        self._progress_handler: Optional[ProgressHandler] = None

    @property
    def work_dir(self) -> Optional[Path]:
        return self._work_dir

    def is_ready(self) -> bool:
        return self._executable is not None and self._work_dir is not None

    def initialize(self) -> None:
        """Locate and probe ffmpeg, then create working storage. No-op when ready."""
        if self.is_ready():
            return
        executable = shutil.which(self.binary)
        if executable is None:
            logger.error("ffmpeg not found (%s). Install ffmpeg for video conversion.", self.binary)
            raise EngineError(f"ffmpeg not found: {self.binary}")
        try:
            result = subprocess.run(
                [executable, "-hide_banner", "-version"],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise EngineError(f"ffmpeg could not be started: {e}") from e
        if result.returncode != 0:
            raise EngineError(f"ffmpeg -version exited with code {result.returncode}")
        version = (result.stdout.splitlines() or ["unknown version"])[0]
        try:
            self.work_root.mkdir(parents=True, exist_ok=True)
            work_dir = Path(tempfile.mkdtemp(prefix="engine_", dir=self.work_root))
        except OSError as e:
            raise EngineError(f"Could not create working storage under {self.work_root}: {e}") from e
        self._executable = executable
        self._work_dir = work_dir
        logger.info("Engine ready: %s (working storage %s)", version, work_dir)

    def set_progress_handler(self, handler: Optional[ProgressHandler]) -> None:
        self._progress_handler = handler

    def _path(self, logical_name: str) -> Path:
        if not self.is_ready():
            raise EngineError("Engine is not initialized")
        if not logical_name or Path(logical_name).name != logical_name:
            raise ValueError(f"Invalid logical name: {logical_name!r}")
        return self._work_dir / logical_name

    def stage_input(self, logical_name: str, data: bytes) -> None:
        path = self._path(logical_name)
        path.write_bytes(data)
        logger.debug("Staged %s (%s bytes)", logical_name, len(data))

    def retrieve_output(self, logical_name: str) -> bytes:
        path = self._path(logical_name)
        if not path.is_file():
            raise ConversionError(f"Engine produced no output named {logical_name}")
        return path.read_bytes()

    def discard(self, logical_name: str) -> None:
        """Remove a file from working storage; missing files are ignored."""
        if not self.is_ready():
            return
        try:
            self._path(logical_name).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove %s from working storage: %s", logical_name, e)

    def _emit(self, ratio: float) -> None:
        handler = self._progress_handler
        if handler is not None:
            handler(ratio)

    def invoke(self, argv: list[str]) -> None:
        """Run ffmpeg with argv inside working storage, reporting progress."""
        if not self.is_ready():
            raise EngineError("Engine is not initialized")
        cmd = [
            self._executable, "-hide_banner", "-nostdin", "-y",
            "-nostats", "-progress", "pipe:1",
            *argv,
        ]
        trim = trim_seconds(argv)
        duration: Optional[float] = None
        tail: deque[str] = deque(maxlen=20)
        expired = threading.Event()
        logger.info("Running: %s", " ".join(cmd))
        try:
            with subprocess.Popen(
                cmd,
                cwd=self._work_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            ) as process:

                def _expire():
                    expired.set()
                    process.kill()

                timer = threading.Timer(self.timeout, _expire)
                timer.daemon = True
                timer.start()
                try:
                    for raw in process.stdout:
                        line = raw.strip()
                        if not line:
                            continue
                        if _PROGRESS_LINE_RE.match(line):
                            out_time = parse_out_time_line(line)
                            if out_time is not None and duration:
                                self._emit(out_time / duration)
                            continue
                        tail.append(line)
                        logger.debug("ffmpeg: %s", line)
                        if duration is None:
                            seconds = parse_duration_line(line)
                            if seconds:
                                duration = min(seconds, trim) if trim else seconds
                    returncode = process.wait()
                finally:
                    timer.cancel()
                    if process.poll() is None:
                        process.kill()
        except OSError as e:
            raise ConversionError(f"ffmpeg could not be started: {e}", command=cmd) from e
        output = "\n".join(tail)
        if expired.is_set() and returncode != 0:
            raise ConversionError(f"ffmpeg timed out after {self.timeout}s", command=cmd, output=output)
        if returncode != 0:
            raise ConversionError(f"ffmpeg exited with code {returncode}", command=cmd, output=output)
        self._emit(1.0)
