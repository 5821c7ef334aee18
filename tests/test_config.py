"""Tests for AppConfig defaults and remote validation."""

import pytest

from cityreport.config import AppConfig
from cityreport.errors import ConfigError


class TestDefaults:
    """Policy defaults match the documented behaviour."""

    def test_session_and_lockout(self):
        config = AppConfig(SUPABASE_URL="")
        assert config.SESSION_ABSOLUTE_TTL_S == 8 * 60 * 60
        assert config.SESSION_INACTIVITY_TTL_S == 2 * 60 * 60
        assert config.MAX_LOGIN_ATTEMPTS == 3
        assert config.LOCKOUT_DURATION_S == 30 * 60
        assert config.PASSWORD_MIN_LENGTH == 12
        assert config.SYNC_OUTBOX_ENABLED is False


class TestRemoteValidation:
    """Only the shape of the remote settings is checked."""

    def test_valid(self):
        config = AppConfig(
            SUPABASE_URL="https://abc.supabase.co",
            SUPABASE_ANON_KEY="anon-key",
        )
        config.validate_remote_config()
        assert config.remote_enabled is True

    @pytest.mark.parametrize("url,key", [
        ("", "anon-key"),
        ("http://abc.supabase.co", "anon-key"),
        ("https://", "anon-key"),
        ("https://abc.supabase.co", "   "),
    ])
    def test_invalid(self, url, key):
        config = AppConfig(SUPABASE_URL=url, SUPABASE_ANON_KEY=key)
        with pytest.raises(ConfigError):
            config.validate_remote_config()
        assert config.remote_enabled is False
