from __future__ import annotations

import json
from pathlib import Path
import sys

from typer.testing import CliRunner


def _load():
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from retryweave import cli

    return cli


_GOOD = "@retry(when=is_transient)\nasync def ping(host):\n    return host\n"
_BAD = "@retry(adjust=clamp)\ndef ping():\n    return 1\n"


def test_expand_prints_without_touching_the_file(tmp_path: Path) -> None:
    cli = _load()
    target = tmp_path / "jobs.py"
    target.write_text(_GOOD)
    result = CliRunner().invoke(cli.app, ["expand", str(target)])
    assert result.exit_code == 0
    assert result.stdout.startswith("import retryweave.runtime as _retryweave_runtime\n")
    assert ".when(is_transient)" in result.stdout
    assert target.read_text() == _GOOD


def test_expand_write_rewrites_in_place(tmp_path: Path) -> None:
    cli = _load()
    target = tmp_path / "jobs.py"
    target.write_text(_GOOD)
    result = CliRunner().invoke(cli.app, ["expand", str(target), "--write"])
    assert result.exit_code == 0
    assert f"Rewrote {target} (1 functions)" in result.stdout
    rewritten = target.read_text()
    assert "@retry" not in rewritten
    assert "async def _retryweave_operation():" in rewritten


def test_expand_reports_diagnostics(tmp_path: Path) -> None:
    cli = _load()
    target = tmp_path / "jobs.py"
    target.write_text(_BAD)
    result = CliRunner().invoke(cli.app, ["expand", str(target), "--write"])
    assert result.exit_code == 1
    assert "`adjust` is only available for async functions in `ping`" in result.output
    assert target.read_text() == _BAD


def test_plan_emits_json(tmp_path: Path) -> None:
    cli = _load()
    target = tmp_path / "jobs.py"
    target.write_text(_GOOD)
    result = CliRunner().invoke(cli.app, ["plan", str(target)])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    [report] = payload["files"]
    assert report["path"] == str(target)
    assert report["expansions"] == [
        {
            "function": "ping",
            "line": 2,
            "executor_variant": "Suspending",
            "capture_strategy": "ByReference",
            "receiver": "None",
            "references": {
                "backoff": "_retryweave_runtime.ExponentialBuilder",
                "when": "is_transient",
            },
            "context": False,
        }
    ]
    assert report["diagnostics"] == []


def test_plan_fails_on_diagnostics(tmp_path: Path) -> None:
    cli = _load()
    target = tmp_path / "jobs.py"
    target.write_text(_BAD)
    result = CliRunner().invoke(cli.app, ["plan", str(target)])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    [diagnostic] = payload["files"][0]["diagnostics"]
    assert diagnostic["rule"] == "adjust-blocking"
    assert diagnostic["function"] == "ping"


def test_config_root_is_honoured(tmp_path: Path) -> None:
    cli = _load()
    (tmp_path / "retryweave.toml").write_text("[retry]\nrequire_sleep = true\n")
    target = tmp_path / "jobs.py"
    target.write_text(_GOOD)
    result = CliRunner().invoke(cli.app, ["expand", str(target), "--root", str(tmp_path)])
    assert result.exit_code == 1
    assert "the Suspending executor requires a `sleep` function" in result.output

    result = CliRunner().invoke(
        cli.app, ["expand", str(target), "--config", str(tmp_path / "absent.toml")]
    )
    assert result.exit_code == 0
