"""Tests for configuration loading"""

import pytest

from audio_catalog.core.config import DEFAULT_TIERS, ORIGINAL_TIER, load_config, parse_config
from audio_catalog.core.exceptions import ConfigError

from tests.conftest import make_raw_config


class TestParseConfig:
    """Test parse_config validation and defaults"""

    def test_valid_config(self, temp_dir):
        """Test a full configuration is parsed"""
        config = parse_config(make_raw_config(temp_dir), environ={})

        assert config.storage.endpoint == "https://acct.r2.cloudflarestorage.com"
        assert config.storage.bucket_name == "music-catalog"
        assert config.database.name == "test_catalog"
        assert config.tier_names == [ORIGINAL_TIER, "medium", "low"]
        assert config.concurrency.max_transcodes == 2
        assert config.ingest.temp_directory == (temp_dir / "work").resolve()

    def test_default_tiers(self, temp_dir):
        """Test missing tiers section uses medium and low"""
        raw = make_raw_config(temp_dir)
        del raw["tiers"]
        assert parse_config(raw, environ={}).tiers == DEFAULT_TIERS

    def test_empty_tiers_stores_original_only(self, temp_dir):
        """Test an empty tiers section means only the original"""
        config = parse_config(make_raw_config(temp_dir, tiers={}), environ={})
        assert config.tier_names == [ORIGINAL_TIER]

    def test_tier_options(self, temp_dir):
        """Test integer bitrate, extension and mandatory flag"""
        config = parse_config(make_raw_config(temp_dir, tiers={
            "hq": {"codec": "libmp3lame", "bitrate": 320, "extension": ".MP3", "mandatory": True},
        }), environ={})
        tier = config.get_tier("hq")
        assert tier.bitrate == "320k"
        assert tier.extension == "mp3"
        assert tier.mandatory is True
        assert tier.sample_rate == 44100
        assert config.get_tier("missing") is None

    def test_original_tier_name_reserved(self, temp_dir):
        """Test 'original' cannot be configured as a tier"""
        with pytest.raises(ConfigError):
            parse_config(make_raw_config(temp_dir, tiers={
                "original": {"codec": "aac", "bitrate": "128k"},
            }), environ={})

    def test_missing_sections(self, temp_dir):
        """Test storage and database are required"""
        raw = make_raw_config(temp_dir)
        del raw["database"]
        with pytest.raises(ConfigError):
            parse_config(raw, environ={})

    def test_invalid_values(self, temp_dir):
        """Test bad values are reported as ConfigError"""
        for section, key, value in (
            ("database", "uri", "http://localhost"),
            ("storage", "bucket_name", ""),
            ("concurrency", "max_transcodes", 0),
        ):
            raw = make_raw_config(temp_dir)
            raw[section][key] = value
            with pytest.raises(ConfigError):
                parse_config(raw, environ={})

    def test_small_part_size_rejected(self, temp_dir):
        """Test multipart parts below 5 MB are refused"""
        raw = make_raw_config(temp_dir)
        raw["multipart"] = {"part_size_mb": 1}
        with pytest.raises(ConfigError):
            parse_config(raw, environ={})

    def test_environment_overrides(self, temp_dir):
        """Test secrets from the environment win over the file"""
        config = parse_config(make_raw_config(temp_dir), environ={
            "R2_SECRET_ACCESS_KEY": "from-env",
            "MONGODB_URI": "mongodb+srv://cluster.example.net",
        })
        assert config.storage.secret_access_key == "from-env"
        assert config.database.uri == "mongodb+srv://cluster.example.net"


class TestLoadConfig:
    """Test reading config.yaml"""

    def test_missing_file(self, temp_dir):
        """Test a missing file raises ConfigError"""
        with pytest.raises(ConfigError):
            load_config(temp_dir / "config.yaml")

    def test_invalid_yaml(self, temp_dir):
        """Test broken YAML raises ConfigError"""
        path = temp_dir / "config.yaml"
        path.write_text("storage: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_load_from_file(self, temp_dir, monkeypatch):
        """Test a YAML file is loaded and parsed"""
        for name in ("R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY",
                     "R2_BUCKET_NAME", "R2_PUBLIC_DOMAIN", "MONGODB_URI"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(temp_dir)

        path = temp_dir / "config.yaml"
        path.write_text(
            "storage:\n"
            "  endpoint: http://localhost:9000\n"
            "  access_key_id: key\n"
            "  secret_access_key: secret\n"
            "  bucket_name: music\n"
            "database:\n"
            "  uri: mongodb://localhost:27017\n"
            "tiers:\n"
            "  low: {codec: aac, bitrate: 128k}\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.storage.endpoint == "http://localhost:9000"
        assert config.storage.account_id == ""
        assert config.tier_names == [ORIGINAL_TIER, "low"]
        assert config.database.name == "music_library"
