"""Tests for CLI helpers and exit codes"""

from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner

from audio_catalog.cli import _build, _metadata_fields, _parse_shares, cli
from audio_catalog.commands import DeleteTracksRequest, SearchResponse
from audio_catalog.core.exceptions import DatabaseError, NotFoundError


def write_config(temp_dir):
    path = temp_dir / "config.yaml"
    path.write_text(
        "storage:\n"
        "  endpoint: http://localhost:9000\n"
        "  access_key_id: key\n"
        "  secret_access_key: secret\n"
        "  bucket_name: music\n"
        "database:\n"
        "  uri: mongodb://localhost:27017\n"
        f"ingest:\n"
        f"  log_directory: {temp_dir / 'logs'}\n",
        encoding="utf-8",
    )
    return path


class TestHelpers:
    """Test option parsing helpers"""

    def test_parse_shares(self):
        """Test NAME:PCT values, including names with colons"""
        assert _parse_shares(("Jane Doe:60", "Studio: North:40"), "--writer") == [
            {"name": "Jane Doe", "percentage": 60.0},
            {"name": "Studio: North", "percentage": 40.0},
        ]
        assert _parse_shares((), "--writer") is None

    def test_parse_shares_invalid(self):
        """Test malformed shares are usage errors"""
        with pytest.raises(click.BadParameter):
            _parse_shares(("Jane",), "--writer")
        with pytest.raises(click.BadParameter):
            _parse_shares(("Jane:lots",), "--writer")

    def test_metadata_fields(self):
        """Test only passed options become fields"""
        fields = _metadata_fields(
            title=None, artist="Ann", comments=None, track_number=0, year=None,
            genre=("Rock",), mood=(), instrument=("Piano",), composer=(),
            writer=("Ann:100",), publisher=(),
        )
        assert fields == {
            "artist": "Ann",
            "track_number": 0,
            "genre": ["Rock"],
            "instruments": ["Piano"],
            "writers": [{"name": "Ann", "percentage": 100.0}],
        }

    def test_build_rejects_invalid_request(self):
        """Test request validation errors surface as usage errors"""
        assert _build(DeleteTracksRequest, track_ids=("a",)).track_ids == ("a",)
        with pytest.raises(click.UsageError):
            _build(DeleteTracksRequest, track_ids=(" ",))


class TestExitCodes:
    """Test error to exit code mapping"""

    def test_config_error(self, temp_dir):
        """Test an invalid configuration exits with 1"""
        path = temp_dir / "config.yaml"
        path.write_text("storage: {}\n", encoding="utf-8")

        result = CliRunner().invoke(cli, ["--config", str(path), "tags"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_database_error(self, temp_dir):
        """Test database failures exit with 2"""
        path = write_config(temp_dir)

        with patch("audio_catalog.cli.execute", side_effect=DatabaseError("boom")):
            result = CliRunner().invoke(cli, ["--config", str(path), "tags"])

        assert result.exit_code == 2

    def test_not_found_error(self, temp_dir):
        """Test other catalog errors exit with 4"""
        path = write_config(temp_dir)

        with patch("audio_catalog.cli.execute", side_effect=NotFoundError("Track not found: x")):
            result = CliRunner().invoke(cli, ["--config", str(path), "delete", "x", "--yes"])

        assert result.exit_code == 4
        assert "Track not found" in result.output

    def test_search_no_results(self, temp_dir):
        """Test an empty search prints a message and succeeds"""
        path = write_config(temp_dir)

        async def empty(context, request):
            return SearchResponse()

        with patch("audio_catalog.cli.execute", side_effect=empty):
            result = CliRunner().invoke(cli, ["--config", str(path), "search", "Nonexistent"])

        assert result.exit_code == 0
        assert "No results" in result.output
