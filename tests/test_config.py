from __future__ import annotations

from pathlib import Path
import sys


def _load():
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from retryweave import config

    return config


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    config = _load()
    settings = config.load_settings(root=tmp_path)
    assert settings == config.EngineSettings()
    assert settings.decorators == ("retry", "retryweave.retry")
    assert settings.default_backoff == "_retryweave_runtime.ExponentialBuilder"
    assert settings.runtime_module == "retryweave.runtime"
    assert settings.require_sleep == frozenset()


def test_retry_section_is_read(tmp_path: Path) -> None:
    config = _load()
    (tmp_path / "retryweave.toml").write_text(
        "[retry]\n"
        'decorators = "retry, backoff.retry"\n'
        'default_backoff = "policies.standard"\n'
        'runtime_module = "acme.retry_runtime"\n'
        'require_sleep = ["blocking", "Suspending", "bogus"]\n'
    )
    settings = config.load_settings(root=tmp_path)
    assert settings.decorators == ("retry", "backoff.retry")
    assert settings.default_backoff == "policies.standard"
    assert settings.runtime_module == "acme.retry_runtime"
    assert settings.require_sleep == frozenset({"Blocking", "Suspending"})


def test_require_sleep_accepts_booleans(tmp_path: Path) -> None:
    config = _load()
    path = tmp_path / "custom.toml"
    path.write_text("[retry]\nrequire_sleep = true\n")
    settings = config.load_settings(config_path=path)
    assert settings.require_sleep == frozenset(
        {"Suspending", "Blocking", "SuspendingWithContext", "BlockingWithContext"}
    )
    path.write_text("[retry]\nrequire_sleep = false\n")
    assert config.load_settings(config_path=path).require_sleep == frozenset()


def test_malformed_config_is_ignored(tmp_path: Path) -> None:
    config = _load()
    (tmp_path / "retryweave.toml").write_text("[retry\nnot toml")
    assert config.load_settings(root=tmp_path) == config.EngineSettings()
    (tmp_path / "retryweave.toml").write_text('retry = "flat"\n')
    assert config.retry_defaults(root=tmp_path) == {}
    assert config.load_settings(root=tmp_path) == config.EngineSettings()


def test_blank_values_fall_back(tmp_path: Path) -> None:
    config = _load()
    (tmp_path / "retryweave.toml").write_text(
        '[retry]\ndecorators = []\ndefault_backoff = "  "\nruntime_module = 3\n'
    )
    settings = config.load_settings(root=tmp_path)
    assert settings.decorators == config.DEFAULT_DECORATORS
    assert settings.default_backoff == config.DEFAULT_BACKOFF
    assert settings.runtime_module == config.DEFAULT_RUNTIME_MODULE
