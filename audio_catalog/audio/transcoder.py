"""
Audio transcoding through the ffmpeg CLI.

One call produces one quality tier for one input file. The command line is
built with ffmpeg-python and run as an asyncio subprocess, so many
transcodes can be awaited concurrently (the orchestrator caps how many).

Guarantees:
    - Output is accepted only on exit code 0 with a non-empty file
    - On failure or cancellation, any partial output is removed
    - Inputs are never touched

Usage:
    transcoder = Transcoder()
    out = await transcoder.transcode(Path("song.flac"), tier, work_dir)
"""

import asyncio
import shutil
from pathlib import Path

import ffmpeg

from audio_catalog.core.config import TierPreset
from audio_catalog.core.exceptions import EncodingFailed
from audio_catalog.core.logger import get_logger

logger = get_logger(__name__)


# Keep the tail of stderr only; ffmpeg can be verbose on bad input
_MAX_STDERR_CHARS = 4000


def check_ffmpeg(binary: str = "ffmpeg") -> bool:
    """Return True if the ffmpeg binary is available on PATH."""
    return shutil.which(binary) is not None


class Transcoder:
    """
    Runs ffmpeg to produce tier renditions.

    Attributes:
        binary: ffmpeg executable name or path.
        timeout: Optional per-process timeout in seconds.
    """

    def __init__(self, binary: str = "ffmpeg", timeout: float | None = None) -> None:
        self.binary = binary
        self.timeout = timeout

    @staticmethod
    def output_path_for(input_path: Path, tier: TierPreset, output_dir: Path) -> Path:
        return output_dir / f"{input_path.stem}_{tier.name}.{tier.extension}"

    def build_command(self, input_path: Path, output_path: Path, tier: TierPreset) -> list[str]:
        """
        Build the ffmpeg argument list for one tier.

        Equivalent to:
            ffmpeg -hide_banner -loglevel error -i IN
                   -acodec CODEC -ar RATE -b:a BITRATE -vn OUT -y
        """
        stream = (
            ffmpeg
            .input(str(input_path))
            .output(
                str(output_path),
                acodec=tier.codec,
                audio_bitrate=tier.bitrate,
                ar=tier.sample_rate,
                vn=None,
            )
            .global_args("-hide_banner", "-loglevel", "error")
            .overwrite_output()
        )
        return stream.compile(cmd=self.binary)

    async def transcode(self, input_path: Path, tier: TierPreset, output_dir: Path) -> Path:
        """
        Transcode `input_path` into `output_dir` using the tier preset.

        Returns:
            Path of the produced file.

        Raises:
            EncodingFailed: Spawn error, non-zero exit, timeout or empty output.
                            Carries the captured stderr.
            asyncio.CancelledError: Propagated after killing the process.
        """
        output_path = self.output_path_for(input_path, tier, output_dir)
        command = self.build_command(input_path, output_path, tier)
        details = {"file_path": str(input_path), "tier": tier.name}

        logger.debug(f"Transcoding {input_path.name} -> {tier.name} ({tier.codec} {tier.bitrate} {tier.sample_rate}Hz)")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EncodingFailed(
                f"ffmpeg not found: install ffmpeg or check '{self.binary}' is on PATH",
                details={**details, "reason": "ffmpeg_not_found"},
            ) from e
        except OSError as e:
            raise EncodingFailed(
                f"Failed to start ffmpeg: {e}",
                details={**details, "reason": "spawn_failed"},
            ) from e

        try:
            if self.timeout is not None:
                _, stderr_bytes = await asyncio.wait_for(process.communicate(), self.timeout)
            else:
                _, stderr_bytes = await process.communicate()
        except asyncio.TimeoutError as e:
            await _kill(process)
            _remove_partial(output_path)
            raise EncodingFailed(
                f"ffmpeg timed out after {self.timeout}s",
                details={**details, "reason": "timeout"},
            ) from e
        except asyncio.CancelledError:
            await _kill(process)
            _remove_partial(output_path)
            raise

        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")[-_MAX_STDERR_CHARS:]

        if process.returncode != 0:
            _remove_partial(output_path)
            raise EncodingFailed(
                f"ffmpeg exited with code {process.returncode} for tier '{tier.name}'",
                details={**details, "returncode": process.returncode},
                stderr=stderr,
            )

        if not output_path.exists() or output_path.stat().st_size == 0:
            _remove_partial(output_path)
            raise EncodingFailed(
                f"ffmpeg produced no output for tier '{tier.name}'",
                details={**details, "reason": "empty_output"},
                stderr=stderr,
            )

        logger.debug(f"Transcoded {input_path.name} -> {output_path.name}")
        return output_path


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial output {path}: {e}")
