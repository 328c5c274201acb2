"""
Unit tests for the PID regulator and the anti-windup commit rule.
"""

from __future__ import annotations

import pytest

from annealctl.control.interfaces import PIDGains, PIDOutput
from annealctl.control.pid import apply_delta, clamp_voltage, regulate


@pytest.fixture
def rig_gains() -> PIDGains:
    """Gains the rig was commissioned with."""
    return PIDGains(kp=0.01, ki=0.0, kd=0.125)


def test_regulate_commissioning_scenario(rig_gains):
    """target 50°C, at 40°C, no temperature change -> +0.1 V."""
    out = regulate(
        error=50.0 - 40.0,
        current_temp=40.0,
        last_temp=40.0,
        integral=0.0,
        dt=0.5,
        gains=rig_gains,
    )
    assert out.delta == pytest.approx(0.1)
    assert out.p_term == pytest.approx(0.1)
    assert out.d_term == pytest.approx(0.0)


def test_regulate_first_sample_has_no_derivative(rig_gains):
    """With no previous temperature the derivative term is zero."""
    out = regulate(10.0, 40.0, None, 0.0, 0.5, rig_gains)
    assert out.d_term == 0.0
    assert out.delta == pytest.approx(0.1)


def test_regulate_rising_temperature_opposes_voltage(rig_gains):
    """A rising temperature pulls the delta down."""
    steady = regulate(1.0, 49.0, 49.0, 0.0, 0.5, rig_gains)
    rising = regulate(1.0, 49.0, 48.8, 0.0, 0.5, rig_gains)
    assert rising.d_term == pytest.approx(-0.125 * 0.2 / 0.5)
    assert rising.delta < steady.delta


def test_regulate_returns_trial_integral():
    """Trial integral is integral + error*dt, and scales the I term."""
    gains = PIDGains(kp=0.0, ki=0.5, kd=0.0)
    out = regulate(2.0, 48.0, 48.0, 3.0, 0.25, gains)
    assert out.integral == pytest.approx(3.5)
    assert out.i_term == pytest.approx(1.75)
    assert out.delta == pytest.approx(1.75)


def test_regulate_uses_actual_dt():
    """The derivative is divided by the dt passed in, not a constant."""
    gains = PIDGains(kp=0.0, ki=0.0, kd=1.0)
    short = regulate(0.0, 41.0, 40.0, 0.0, 0.5, gains)
    long = regulate(0.0, 41.0, 40.0, 0.0, 1.0, gains)
    assert short.delta == pytest.approx(-2.0)
    assert long.delta == pytest.approx(-1.0)


@pytest.mark.parametrize("dt", [0.0, -0.5])
def test_regulate_rejects_non_positive_dt(rig_gains, dt):
    with pytest.raises(ValueError):
        regulate(1.0, 40.0, 40.0, 0.0, dt, rig_gains)


def test_clamp_voltage():
    assert clamp_voltage(-0.2, 1.3) == 0.0
    assert clamp_voltage(0.7, 1.3) == 0.7
    assert clamp_voltage(5.0, 1.3) == 1.3


def test_apply_delta_commits_integral_when_unsaturated():
    out = PIDOutput(delta=0.1, integral=4.0)
    update = apply_delta(0.5, out, committed_integral=3.0, v_max=1.3)
    assert update.voltage == pytest.approx(0.6)
    assert update.integral == 4.0
    assert update.saturated is False


def test_apply_delta_holds_integral_above_ceiling():
    """Anti-windup: saturated at v_max, the old integral is kept."""
    out = PIDOutput(delta=0.5, integral=4.0)
    update = apply_delta(1.2, out, committed_integral=3.0, v_max=1.3)
    assert update.voltage == 1.3
    assert update.integral == 3.0
    assert update.saturated is True


def test_apply_delta_holds_integral_below_zero():
    out = PIDOutput(delta=-0.5, integral=-4.0)
    update = apply_delta(0.2, out, committed_integral=-3.0, v_max=1.3)
    assert update.voltage == 0.0
    assert update.integral == -3.0
    assert update.saturated is True


def test_apply_delta_boundary_counts_as_saturated():
    """An unclamped output exactly at a limit does not commit."""
    out = PIDOutput(delta=-0.5, integral=9.0)
    update = apply_delta(0.5, out, committed_integral=1.0, v_max=1.3)
    assert update.voltage == 0.0
    assert update.integral == 1.0


def test_voltage_always_within_bounds_for_extreme_outputs():
    """No regulator output, however large, escapes [0, v_max]."""
    gains = PIDGains(kp=100.0, ki=50.0, kd=10.0)
    voltage, integral = 0.6, 0.0
    for error, temp, last in [(1e6, 0.0, 0.0), (-1e6, 1e6, 0.0), (3.0, 20.0, 80.0)]:
        out = regulate(error, temp, last, integral, 0.5, gains)
        update = apply_delta(voltage, out, integral, 1.3)
        assert 0.0 <= update.voltage <= 1.3
        voltage, integral = update.voltage, update.integral
