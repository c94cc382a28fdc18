"""Tests for client configuration loading."""

from __future__ import annotations

import json
import os

import pytest

from zkda.config import (
    DEFAULT_BASE_URL,
    ClientConfig,
    EncoderConfig,
    LedgerConfig,
    RetryPolicy,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("ZKDA_"):
            monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_defaults(self):
        config = ClientConfig.load()
        assert config.ledger.base_url == DEFAULT_BASE_URL
        assert config.retry.max_attempts == 5
        assert config.retry.base_delay_seconds == 1.0
        assert config.encoder.allow_self_transfer is False

    def test_backoff_schedule(self):
        policy = RetryPolicy()
        assert [policy.delay_for(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]


class TestValidation:
    def test_trailing_slash_stripped(self):
        assert LedgerConfig(base_url="http://ledger:16000/").base_url == "http://ledger:16000"

    @pytest.mark.parametrize("url", ["ledger:16000", "ftp://ledger", ""])
    def test_base_url_scheme(self, url):
        with pytest.raises(ValueError):
            LedgerConfig(base_url=url)

    def test_timeout_positive(self):
        with pytest.raises(ValueError):
            LedgerConfig(timeout_seconds=0)

    def test_retry_bounds(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay_seconds=-1)

    @pytest.mark.parametrize("prefix", ["", "acc:ount"])
    def test_account_prefix(self, prefix):
        with pytest.raises(ValueError):
            EncoderConfig(account_prefix=prefix)


class TestLoading:
    def test_toml_file(self, tmp_path):
        path = tmp_path / "zkda.toml"
        path.write_text(
            '[ledger]\nbase_url = "https://ledger.example"\n\n'
            "[retry]\nmax_attempts = 3\n\n"
            "[encoder]\nallow_self_transfer = true\n"
        )

        config = ClientConfig.load(path)

        assert config.ledger.base_url == "https://ledger.example"
        assert config.retry.max_attempts == 3
        assert config.encoder.allow_self_transfer is True

    def test_json_file(self, tmp_path):
        path = tmp_path / "zkda.json"
        path.write_text(json.dumps({"retry": {"base_delay_seconds": 0.25}}))

        assert ClientConfig.load(path).retry.base_delay_seconds == 0.25

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        assert ClientConfig.load(tmp_path / "absent.toml") == ClientConfig()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "zkda.toml"
        path.write_text("[retry]\nmax_attempts = 3\n")
        monkeypatch.setenv("ZKDA_RETRY_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("ZKDA_LEDGER_BASE_URL", "http://10.0.0.5:16000")
        monkeypatch.setenv("ZKDA_ENCODER_TAG_PUBLIC_INPUTS", "yes")

        config = ClientConfig.load(path)

        assert config.retry.max_attempts == 7
        assert config.ledger.base_url == "http://10.0.0.5:16000"
        assert config.encoder.tag_public_inputs is True

    def test_unrelated_env_ignored(self, monkeypatch):
        monkeypatch.setenv("ZKDA_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ZKDA_UNKNOWN_FIELD", "1")
        assert ClientConfig.load() == ClientConfig()

    def test_to_dict_redacts_api_key(self):
        config = ClientConfig(ledger=LedgerConfig(api_key="s3cret"))
        assert config.to_dict()["ledger"]["api_key"] == "[REDACTED]"
