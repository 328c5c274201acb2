from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from annealctl.config import ControllerConfig, HardwareConfig, RunConfig, load_config
from annealctl.errors import ConfigError


def test_controller_defaults_are_commissioned_values():
    cfg = ControllerConfig().validate()
    assert (cfg.kp, cfg.ki, cfg.kd) == (0.01, 0.0, 0.125)
    assert cfg.v_max == 1.3
    assert cfg.stability_duration_s == 30.0
    assert cfg.stability_stdev_c == 0.06
    assert cfg.tolerance_c == 0.4
    assert cfg.tick_period_s == 0.5
    assert cfg.recorder_capacity == 10000
    assert cfg.gains.kd == 0.125


@pytest.mark.parametrize("change", [
    dict(v_max=0.0),
    dict(kp=float("nan")),
    dict(stability_duration_s=-1.0),
    dict(stability_stdev_c=0.0),
    dict(stability_min_samples=1),
    dict(tolerance_c=0.0),
    dict(tick_period_s=0.0),
    dict(recorder_capacity=1),
    dict(io_timeout_s=0.0),
    dict(anneal_temp_tolerance_c=-0.1),
    dict(guess_table=((30.0, 0.5),)),
    dict(guess_table=((55.0, 1.25), (30.0, 0.5))),
])
def test_controller_validate_rejects(change):
    with pytest.raises(ConfigError):
        replace(ControllerConfig(), **change).validate()


def test_run_config_explicit_out_dir():
    cfg = RunConfig.from_args(name="anneal", out_dir="some/dir", duration_s=60)
    assert cfg.out_dir == Path("some/dir")
    assert cfg.duration_s == 60.0


def test_run_config_default_out_dir_is_sanitized():
    cfg = RunConfig.from_args(name="my run/1", out_dir=None)
    assert cfg.out_dir.parent == Path("artifacts/runs")
    assert cfg.out_dir.name.endswith("_my_run_1")

    fallback = RunConfig.from_args(name="///", out_dir=None)
    assert fallback.out_dir.name.endswith("_session")


@pytest.mark.parametrize("kwargs", [
    dict(name="", out_dir=None),
    dict(name="x", out_dir=None, duration_s=0),
])
def test_run_config_rejects(kwargs):
    with pytest.raises(ConfigError):
        RunConfig.from_args(**kwargs)


def test_load_config_overrides_defaults():
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "rig.toml"
        path.write_text(
            """
[controller]
kp = 0.02
v_max = 1.2
guess_table = [[25.0, 0.4], [45.0, 0.9], [60.0, 1.2]]

[hardware]
psu_port = "/dev/ttyUSB0"
daq_burst_samples = 10
""",
            encoding="utf-8",
        )
        controller, hardware = load_config(path)

    assert controller.kp == 0.02
    assert controller.v_max == 1.2
    assert controller.kd == 0.125
    assert controller.guess_table == ((25.0, 0.4), (45.0, 0.9), (60.0, 1.2))
    assert hardware.psu_port == "/dev/ttyUSB0"
    assert hardware.daq_burst_samples == 10
    assert hardware.daq_port == HardwareConfig().daq_port


def test_load_config_empty_file_gives_defaults():
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "empty.toml"
        path.write_text("", encoding="utf-8")
        controller, hardware = load_config(path)
    assert controller == ControllerConfig()
    assert hardware == HardwareConfig()


@pytest.mark.parametrize("text", [
    "[controller]\nkp = \n",
    "[pid]\nkp = 0.1\n",
    "[controller]\ngain = 0.1\n",
    "[controller]\nv_max = -1.0\n",
    "[controller]\nguess_table = [[30.0]]\n",
])
def test_load_config_rejects_bad_files(text):
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "bad.toml"
        path.write_text(text, encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


def test_load_config_missing_file():
    with pytest.raises(ConfigError):
        load_config("does/not/exist.toml")
