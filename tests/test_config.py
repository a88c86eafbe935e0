"""
Tests for settings loading from config files and the environment.
"""

import textwrap

import pytest

from toolcall_bridge.config import DEFAULT_MODELS, PROJECT_ROOT, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PORT", "HOST", "BACKEND_URL"):
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path, body):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_defaults_without_config_file():
    settings = Settings(config_path=None)

    assert settings.port == 3000
    assert settings.host == "127.0.0.1"
    assert settings.models == DEFAULT_MODELS
    assert settings.model_owner == "duckai"
    assert settings.backend.url == ""
    assert settings.backend.max_requests_per_minute == 20


def test_values_loaded_from_yaml(tmp_path):
    path = _write_config(tmp_path, """
        settings:
          port: 8123
          log_level: DEBUG
          models: ["only-model"]
          stream_words_per_chunk: 3
          backend:
            url: https://backend.test/chat
            timeout: 12
            headers:
              X-Client: tests
    """)
    settings = Settings(str(path))

    assert settings.port == 8123
    assert settings.log_level == "DEBUG"
    assert settings.models == ["only-model"]
    assert settings.stream_words_per_chunk == 3
    assert settings.backend.url == "https://backend.test/chat"
    assert settings.backend.timeout == 12
    assert settings.backend.headers == {"X-Client": "tests"}
    assert settings.backend.min_request_interval == 1.0


def test_unknown_keys_are_ignored(tmp_path):
    path = _write_config(tmp_path, """
        settings:
          not_a_setting: true
    """)
    assert not hasattr(Settings(str(path)), "not_a_setting")


def test_relative_log_path_resolved_against_project_root(tmp_path):
    path = _write_config(tmp_path, """
        settings:
          log_file_path: logs/test.jsonl
    """)
    assert Settings(str(path)).log_file_path == str(PROJECT_ROOT / "logs/test.jsonl")


def test_missing_or_broken_file_falls_back_to_defaults(tmp_path):
    broken = _write_config(tmp_path, "settings: [unclosed")

    assert Settings(str(tmp_path / "missing.yaml")).port == 3000
    assert Settings(str(broken)).port == 3000


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = _write_config(tmp_path, """
        settings:
          port: 8123
          host: 0.0.0.0
          backend:
            url: https://from-file.test/chat
    """)
    monkeypatch.setenv("PORT", "9999")
    monkeypatch.setenv("HOST", "localhost")
    monkeypatch.setenv("BACKEND_URL", "https://from-env.test/chat")

    settings = Settings(str(path))
    assert settings.port == 9999
    assert settings.host == "localhost"
    assert settings.backend.url == "https://from-env.test/chat"
