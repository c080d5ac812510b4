"""Audio probing with ffprobe.

Reads container duration and format names from uploaded bytes so the
ingestion gateway can validate a chunk before storing it.
"""

from __future__ import annotations

import asyncio
import json
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any

from meetrag.core.exceptions import ChunkValidationError, ProviderError
from meetrag.core.logging_config import get_logger
from meetrag.core.models import AudioProbeResult

logger = get_logger(__name__)


def _as_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_ffprobe_output(stdout: str) -> AudioProbeResult:
    """Parse ``ffprobe -of json`` output.

    The container duration wins; when the container does not record one
    (common for streamed webm), the longest stream duration is used.
    ``format_name`` is a comma-separated list such as ``"mov,mp4,m4a"``.

    Raises:
        ChunkValidationError: With reason ``undecodable`` if no format or
            duration can be read.
    """
    try:
        data = json.loads(stdout or "{}")
    except json.JSONDecodeError as e:
        raise ChunkValidationError(f"Unreadable probe output: {e}", reason="undecodable") from e

    fmt = data.get("format") or {}
    format_names = [
        name.strip().lower() for name in str(fmt.get("format_name") or "").split(",") if name.strip()
    ]
    if not format_names:
        raise ChunkValidationError("Audio container could not be identified", reason="undecodable")

    duration = _as_float(fmt.get("duration"))
    if duration is None:
        stream_durations = [
            d for d in (_as_float(s.get("duration")) for s in data.get("streams") or []) if d is not None
        ]
        duration = max(stream_durations) if stream_durations else None
    if duration is None:
        raise ChunkValidationError("Audio duration could not be determined", reason="undecodable")

    return AudioProbeResult(duration_seconds=duration, format_names=format_names)


class FFprobeAudioProbe:
    """AudioProbe backed by the ffprobe binary."""

    _provider_name = "ffprobe"

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 30.0) -> None:
        self._ffprobe_path = ffprobe_path
        self._timeout = timeout_seconds
        self._logger = logger.bind(provider=self._provider_name)

    def _resolve_binary(self) -> str:
        resolved = shutil.which(self._ffprobe_path)
        if not resolved:
            raise ProviderError(
                message="ffprobe is required but it's not installed or not in PATH.",
                provider=self._provider_name,
                retryable=False,
            )
        return resolved

    async def probe(self, data: bytes, filename: str) -> AudioProbeResult:
        """Probe audio bytes.

        Raises:
            ChunkValidationError: If the bytes are not decodable audio.
            ProviderError: If ffprobe itself is unavailable.
        """
        binary = self._resolve_binary()
        suffix = Path(filename).suffix or ".bin"

        def _run() -> subprocess.CompletedProcess[str]:
            with tempfile.TemporaryDirectory(prefix="meetrag-probe-") as tmp:
                path = Path(tmp) / f"chunk{suffix}"
                path.write_bytes(data)
                return subprocess.run(
                    [
                        binary,
                        "-v",
                        "error",
                        "-show_entries",
                        "format=duration,format_name:stream=duration",
                        "-of",
                        "json",
                        str(path),
                    ],
                    capture_output=True,
                    text=True,
                    timeout=self._timeout,
                    check=False,
                )

        try:
            result = await asyncio.to_thread(_run)
        except subprocess.TimeoutExpired as e:
            raise ProviderError(
                message=f"ffprobe timed out after {self._timeout}s",
                provider=self._provider_name,
                retryable=True,
            ) from e

        if result.returncode != 0:
            self._logger.info("probe_rejected", filename=filename, stderr=result.stderr.strip()[:200])
            raise ChunkValidationError("Audio could not be decoded", reason="undecodable")

        probed = parse_ffprobe_output(result.stdout)
        self._logger.debug(
            "probe_completed",
            filename=filename,
            duration_seconds=probed.duration_seconds,
            format_names=probed.format_names,
        )
        return probed
