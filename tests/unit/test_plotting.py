from __future__ import annotations

import pytest

from annealctl.session.artifacts import write_session_artifacts
from annealctl.session.interfaces import Sample, SessionMetrics, SessionResult

pytest.importorskip("matplotlib")

from annealctl.session.plotting import plot_from_artifacts, plot_trace  # noqa: E402


def _samples(n: int = 20) -> list[Sample]:
    return [
        Sample(elapsed_min=i / 120.0, temp_c=40.0 + 0.5 * i, voltage_v=1.1, target_c=50.0)
        for i in range(n)
    ]


def test_plot_trace_writes_png(tmp_path):
    path = plot_trace(_samples(), tmp_path / "figs" / "plot.png", title="test")
    assert path.exists()
    assert path.stat().st_size > 0


def test_plot_trace_rejects_empty(tmp_path):
    with pytest.raises(ValueError):
        plot_trace([], tmp_path / "plot.png")


def test_plot_from_json_artifacts(tmp_path):
    metrics = SessionMetrics(
        session_name="plot",
        start_time="",
        finish_time="",
        total_ticks=20,
        degraded_ticks=0,
        final_state="STABLE",
        fault=None,
        samples_recorded=20,
        samples_retained=20,
        truncations=0,
    )
    write_session_artifacts(out_path=tmp_path, result=SessionResult(metrics, _samples()))

    path = plot_from_artifacts(tmp_path)
    assert path == tmp_path / "plot.png"
    assert path.exists()


def test_plot_from_missing_artifacts(tmp_path):
    with pytest.raises(FileNotFoundError):
        plot_from_artifacts(tmp_path)
