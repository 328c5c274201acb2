from __future__ import annotations

import json

import pytest

from annealctl.cli import main


def test_cli_simulated_anneal(tmp_path, capsys):
    """Unattended simulated session from the command line."""
    rc = main([
        "--simulate", "--fast", "--no-console",
        "--name", "cli_anneal",
        "--out-dir", str(tmp_path),
        "--initial-temp", "51",
        "--target", "51",
        "--anneal", "volt", "0.9", "-0.05", "0.01",
        "--log-level", "WARNING",
    ])
    assert rc == 0

    out = capsys.readouterr().out
    assert out.startswith("cli_anneal: ticks=")
    assert "state=IDLE_AFTER_ANNEAL" in out

    for name in ("trace.csv", "metrics.json", "trace.json"):
        assert (tmp_path / name).exists()
    metrics = json.loads((tmp_path / "metrics.json").read_text(encoding="utf-8"))
    assert metrics["session"]["session_name"] == "cli_anneal"
    assert metrics["session"]["fault"] is None


def test_cli_fast_duration(tmp_path, capsys):
    rc = main([
        "--simulate", "--fast", "--no-console",
        "--out-dir", str(tmp_path),
        "--duration", "10",
        "--log-level", "ERROR",
    ])
    assert rc == 0
    assert "ticks=20 " in capsys.readouterr().out


def test_cli_config_file(tmp_path, capsys):
    cfg = tmp_path / "rig.toml"
    cfg.write_text("[controller]\ntick_period_s = 1.0\n", encoding="utf-8")
    rc = main([
        "--simulate", "--fast", "--no-console",
        "--config", str(cfg),
        "--out-dir", str(tmp_path / "run"),
        "--duration", "10",
        "--log-level", "ERROR",
    ])
    assert rc == 0
    assert "ticks=10 " in capsys.readouterr().out


def test_cli_bad_config_returns_2(tmp_path, capsys):
    cfg = tmp_path / "rig.toml"
    cfg.write_text("[controller]\nv_max = 0\n", encoding="utf-8")
    rc = main(["--simulate", "--config", str(cfg), "--out-dir", str(tmp_path)])
    assert rc == 2
    assert "Configuration error" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [
    ["--fast"],
    ["--simulate", "--fast"],
    ["--simulate", "--anneal", "volt", "1.0", "-0.005", "40"],
    ["--simulate", "--target", "50", "--anneal", "volt", "one", "-0.005", "40"],
])
def test_cli_rejects_bad_arguments(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code == 2


class _SilentConsole:
    def __init__(self, submit, stream=None, out=None):
        self.submit = submit

    def start(self):
        return self


def test_cli_interactive_session_prints_status(tmp_path, capsys, monkeypatch):
    """Without --no-console the operator sees periodic status lines."""
    monkeypatch.setattr("annealctl.console.ConsoleReader", _SilentConsole)
    rc = main([
        "--simulate",
        "--out-dir", str(tmp_path),
        "--duration", "1",
        "--log-level", "ERROR",
    ])
    assert rc == 0

    out = capsys.readouterr().out
    assert "Commands:" in out
    assert "min] Waiting for target temperature" in out
    assert "please set target" in out
