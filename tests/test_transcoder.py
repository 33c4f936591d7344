"""Tests for the ffmpeg transcoder"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from audio_catalog.audio.transcoder import Transcoder
from audio_catalog.core.config import TierPreset
from audio_catalog.core.exceptions import EncodingFailed

LOW = TierPreset(name="low", codec="aac", bitrate="128k", sample_rate=44100)


def fake_process(returncode, stderr=b"", on_run=None):
    """Mock asyncio subprocess whose communicate() optionally writes output"""
    process = Mock()
    process.returncode = None

    async def communicate():
        if on_run is not None:
            on_run()
        process.returncode = returncode
        return b"", stderr

    process.communicate = communicate
    process.wait = AsyncMock(return_value=returncode)
    return process


class TestTranscoder:
    """Test command building and process handling"""

    def test_build_command(self, temp_dir):
        """Test the ffmpeg argument list carries the tier preset"""
        transcoder = Transcoder(binary="/usr/bin/ffmpeg")
        output = Transcoder.output_path_for(temp_dir / "song.flac", LOW, temp_dir)

        command = transcoder.build_command(temp_dir / "song.flac", output, LOW)

        assert command[0] == "/usr/bin/ffmpeg"
        assert output == temp_dir / "song_low.m4a"
        for argument in ("-i", "-acodec", "aac", "-b:a", "128k", "-ar", "44100", "-vn", "-y", "-hide_banner"):
            assert argument in command
        assert command[command.index("-i") + 1] == str(temp_dir / "song.flac")
        assert str(output) in command

    @pytest.mark.asyncio
    async def test_successful_transcode(self, temp_dir):
        """Test exit code 0 with output returns the output path"""
        expected = temp_dir / "song_low.m4a"
        process = fake_process(0, on_run=lambda: expected.write_bytes(b"audio"))

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await Transcoder().transcode(temp_dir / "song.flac", LOW, temp_dir)

        assert result == expected

    @pytest.mark.asyncio
    async def test_nonzero_exit_removes_partial_output(self, temp_dir):
        """Test a failing encoder raises EncodingFailed with stderr and no leftovers"""
        expected = temp_dir / "song_low.m4a"
        process = fake_process(1, stderr=b"Invalid data found", on_run=lambda: expected.write_bytes(b"half"))

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(EncodingFailed) as exc_info:
                await Transcoder().transcode(temp_dir / "song.flac", LOW, temp_dir)

        assert "Invalid data found" in exc_info.value.stderr
        assert exc_info.value.details["returncode"] == 1
        assert not expected.exists()

    @pytest.mark.asyncio
    async def test_empty_output(self, temp_dir):
        """Test exit code 0 without output is still a failure"""
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=fake_process(0))):
            with pytest.raises(EncodingFailed) as exc_info:
                await Transcoder().transcode(temp_dir / "song.flac", LOW, temp_dir)

        assert exc_info.value.details["reason"] == "empty_output"

    @pytest.mark.asyncio
    async def test_missing_binary(self, temp_dir):
        """Test a missing ffmpeg binary is reported as EncodingFailed"""
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("ffmpeg"))):
            with pytest.raises(EncodingFailed) as exc_info:
                await Transcoder().transcode(temp_dir / "song.flac", LOW, temp_dir)

        assert exc_info.value.details["reason"] == "ffmpeg_not_found"


def hanging_process(output_path):
    """Mock ffmpeg that writes partial output and never exits until killed"""
    process = Mock()
    process.returncode = None
    process.running = asyncio.Event()

    async def communicate():
        output_path.write_bytes(b"partial")
        process.running.set()
        await asyncio.Event().wait()

    def kill():
        process.returncode = -9

    process.communicate = communicate
    process.kill = Mock(side_effect=kill)
    process.wait = AsyncMock(return_value=-9)
    return process


class TestTranscoderInterruption:
    """Test the child process is stopped and partial output removed"""

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, temp_dir):
        """Test a timed-out encoder is killed and reported as EncodingFailed"""
        expected = temp_dir / "song_low.m4a"
        process = hanging_process(expected)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(EncodingFailed) as exc_info:
                await Transcoder(timeout=0.05).transcode(temp_dir / "song.flac", LOW, temp_dir)

        assert exc_info.value.details["reason"] == "timeout"
        process.kill.assert_called_once()
        process.wait.assert_awaited()
        assert not expected.exists()

    @pytest.mark.asyncio
    async def test_cancel_kills_process(self, temp_dir):
        """Test cancelling a transcode kills ffmpeg and re-raises CancelledError"""
        expected = temp_dir / "song_low.m4a"
        process = hanging_process(expected)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            task = asyncio.create_task(Transcoder().transcode(temp_dir / "song.flac", LOW, temp_dir))
            await process.running.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        process.kill.assert_called_once()
        assert not expected.exists()
