"""
NoteVault Backend — Settings Tests
"""

import pytest
from pydantic import ValidationError

from notevault.config import Settings, normalize_boolean


@pytest.mark.parametrize("value, expected", [
    ("1", True),
    ("true", True),
    (" YES ", True),
    ("on", True),
    (True, True),
    ("0", False),
    ("false", False),
    ("maybe", False),
    ("", False),
    (None, False),
])
def test_normalize_boolean(value, expected):
    assert normalize_boolean(value) is expected


class TestSettings:

    def test_defaults_run_local_only(self):
        settings = Settings(_env_file=None, use_turso="false", turso_database_url="", turso_auth_token="")
        assert not settings.remote_configured
        assert settings.remote_setup_timeout == 20.0
        assert settings.schema_retry_attempts == 3

    def test_use_turso_reads_env(self, monkeypatch):
        monkeypatch.setenv("USE_TURSO", "yes")
        monkeypatch.setenv("TURSO_DATABASE_URL", "libsql://notes.turso.io")
        monkeypatch.setenv("TURSO_AUTH_TOKEN", "token")

        settings = Settings(_env_file=None)

        assert settings.use_turso is True
        assert settings.remote_configured

    def test_unrecognised_flag_switches_remote_off(self):
        settings = Settings(
            _env_file=None,
            use_turso="maybe",
            turso_database_url="libsql://notes.turso.io",
            turso_auth_token="token",
        )
        assert settings.use_turso is False
        assert settings.has_remote_credentials
        assert not settings.remote_configured

    def test_log_level_is_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_zero_attempts_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, query_retry_attempts=0)
