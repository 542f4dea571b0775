"""Test configuration loading"""

from pathlib import Path

import pytest

from spot_organizer.core.config import ENV_OVERRIDES, load_config
from spot_organizer.core.exceptions import ConfigError


VALID_CONFIG = """
spotify:
  client_id: "file-client-id"
  client_secret: "file-client-secret"

reccobeats:
  max_retries: 5
  default_retry_after: 1.5

cache:
  path: "cache/tracks.db"

logging:
  level: "debug"
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, temp_dir):
    """Isolate tests from real environment variables and config files"""
    for env_var in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.chdir(temp_dir)


def write_config(temp_dir, content):
    config_path = temp_dir / "config.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path


class TestLoadConfig:
    """Test load_config()"""

    def test_valid_file(self, temp_dir):
        """Test values from the file and defaults for the rest"""
        config = load_config(write_config(temp_dir, VALID_CONFIG))

        assert config.spotify.client_id == "file-client-id"
        assert config.spotify.redirect_uri == "http://127.0.0.1:8888/callback"
        assert config.spotify.api_base_url == "https://api.spotify.com/v1/"
        assert config.reccobeats.max_retries == 5
        assert config.reccobeats.default_retry_after == 1.5
        assert config.reccobeats.requests_per_second == 5
        assert config.cache.path == Path("cache/tracks.db")
        assert config.http.timeout == 30.0
        assert config.logging.level == "DEBUG"
        assert config.logging.file is None

    def test_default_file_in_working_directory(self, temp_dir):
        """Test config.yaml is picked up from the working directory"""
        write_config(temp_dir, VALID_CONFIG)

        assert load_config().spotify.client_secret == "file-client-secret"

    def test_environment_only(self, monkeypatch):
        """Test no file is needed when credentials come from the environment"""
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env-id")
        monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("TRACK_CACHE_PATH", "/tmp/env-cache.db")

        config = load_config()

        assert config.spotify.client_id == "env-id"
        assert config.cache.path == Path("/tmp/env-cache.db")

    def test_environment_overrides_file(self, temp_dir, monkeypatch):
        """Test environment variables win over file values"""
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env-id")
        monkeypatch.setenv("SPOT_ORGANIZER_LOG_LEVEL", "warning")

        config = load_config(write_config(temp_dir, VALID_CONFIG))

        assert config.spotify.client_id == "env-id"
        assert config.spotify.client_secret == "file-client-secret"
        assert config.logging.level == "WARNING"

    def test_explicit_file_missing(self, temp_dir):
        """Test an explicit path that does not exist is an error"""
        with pytest.raises(ConfigError):
            load_config(temp_dir / "nope.yaml")

    def test_missing_credentials(self, temp_dir):
        """Test client_secret is required"""
        with pytest.raises(ConfigError) as exc_info:
            load_config(write_config(temp_dir, "spotify:\n  client_id: abc\n"))

        assert exc_info.value.details["field"] == "spotify.client_secret"

    def test_invalid_yaml(self, temp_dir):
        """Test YAML syntax errors are reported"""
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, "spotify: [unclosed"))

    def test_not_a_mapping(self, temp_dir):
        """Test a non-dictionary document is rejected"""
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, "- a\n- b\n"))

    @pytest.mark.parametrize("section", [
        "reccobeats:\n  max_retries: -1\n",
        "reccobeats:\n  max_retries: 2.5\n",
        "reccobeats:\n  requests_per_second: 0\n",
        "http:\n  timeout: 0\n",
        "logging:\n  level: LOUD\n",
    ])
    def test_invalid_values(self, temp_dir, section):
        """Test out-of-range values are rejected"""
        content = 'spotify:\n  client_id: "a"\n  client_secret: "b"\n' + section

        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, content))
