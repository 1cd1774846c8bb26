"""
Tests for settings loading from SEQFRAME_* environment variables.
"""
import pytest
from pydantic import ValidationError

from seqframe.config import ProtocolSettings, get_settings, load_settings

VARIABLES = (
    "SERVICE_NAME",
    "ENVIRONMENT",
    "DEBUG",
    "START_SEQUENCE",
    "DEFAULT_SCOPE",
    "HISTORY_LIMIT",
    "MUTATION_TIMEOUT",
    "REQUIRE_THOUGHTS",
    "SMALL_GAP_THRESHOLD",
    "MAX_UNACKED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in VARIABLES:
        monkeypatch.delenv(f"SEQFRAME_{name}", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLoadSettings:
    """Tests for environment parsing."""

    def test_defaults(self):
        settings = load_settings()

        assert settings.service_name == "seqframe"
        assert settings.start_sequence == 1
        assert settings.default_scope == "default"
        assert settings.history_limit is None
        assert settings.mutation_timeout == 30.0
        assert settings.require_thoughts is False
        assert settings.small_gap_threshold == 20
        assert settings.max_unacked == 50

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("SEQFRAME_START_SEQUENCE", "100")
        monkeypatch.setenv("SEQFRAME_HISTORY_LIMIT", "500")
        monkeypatch.setenv("SEQFRAME_MUTATION_TIMEOUT", "2.5")
        monkeypatch.setenv("SEQFRAME_REQUIRE_THOUGHTS", "True")
        monkeypatch.setenv("SEQFRAME_SMALL_GAP_THRESHOLD", "5")

        settings = load_settings()

        assert settings.start_sequence == 100
        assert settings.history_limit == 500
        assert settings.mutation_timeout == 2.5
        assert settings.require_thoughts is True
        assert settings.small_gap_threshold == 5

    def test_timeout_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("SEQFRAME_MUTATION_TIMEOUT", "none")
        assert load_settings().mutation_timeout is None

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("SEQFRAME_MAX_UNACKED", "0")
        with pytest.raises(ValidationError):
            load_settings()

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("SEQFRAME_DEFAULT_SCOPE", "page")

        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings().default_scope == "page"


class TestProtocolSettings:
    """Tests for the settings model."""

    def test_frozen(self):
        settings = ProtocolSettings()
        with pytest.raises(ValidationError):
            settings.debug = True

    def test_unknown_fields_forbidden(self):
        with pytest.raises(ValidationError):
            ProtocolSettings(redis_url="redis://localhost")

    def test_empty_scope_rejected(self):
        with pytest.raises(ValidationError):
            ProtocolSettings(default_scope="")
