#!/usr/bin/env python3
"""
Anneal Demo: Stabilize, Certify, Ramp

Shows:
- Initial voltage guess and PID seek to a setpoint
- Stability certification over the observation window
- A voltage-mode anneal ramp ending at 0 V
- Crash-safe CSV trace plus end-of-session artifacts
"""

from annealctl.config import ControllerConfig, RunConfig
from annealctl.hardware import SimulatedPowerSupply, SimulatedRig, SimulatedThermometer
from annealctl.scenarios import hold_then_anneal
from annealctl.session.interfaces import ControlState
from annealctl.session.runner import SessionRunner
from annealctl.session.scheduler import VirtualClock


def main():
    print("=" * 70)
    print("annealctl — Simulated Anneal Demo")
    print("=" * 70)
    print()

    run_cfg = RunConfig.from_args(name="demo_anneal", out_dir=None)
    ctrl_cfg = ControllerConfig()

    # Virtual clock: the session runs as fast as the CPU allows
    clock = VirtualClock()
    rig = SimulatedRig(initial_temp_c=30.0, seed=42, clock=clock)

    # Hold 50°C for a minute once stable, then step down 0.02 V every 30 s to 1.0 V
    operator = hold_then_anneal(50.0, "volt", 1.0, -0.02, 0.5, hold_s=60.0)

    transitions = []

    def on_status(status):
        if not transitions or transitions[-1][1] is not status.state:
            transitions.append((status.elapsed_s, status.state, status.status))

    print("Configuration:")
    print(f"  Gains: Kp={ctrl_cfg.kp}, Ki={ctrl_cfg.ki}, Kd={ctrl_cfg.kd}")
    print(f"  Voltage ceiling: {ctrl_cfg.v_max} V")
    print(f"  Stability: {ctrl_cfg.stability_duration_s:.0f} s window, "
          f"stdev < {ctrl_cfg.stability_stdev_c} °C, band ±{ctrl_cfg.tolerance_c} °C")
    print()

    with SessionRunner(
        run_cfg,
        ctrl_cfg,
        SimulatedThermometer(rig),
        SimulatedPowerSupply(rig),
        operator=operator,
        on_status=on_status,
        clock=clock,
        sleep=clock.sleep,
        guard_io=False,
        max_ticks=20000,
    ) as runner:
        result = runner.run()

    print("State transitions:")
    print(f"{'Time(s)':<10} {'State':<28} {'Status'}")
    print("-" * 70)
    for elapsed_s, state, status in transitions:
        print(f"{elapsed_s:<10.1f} {state.name:<28} {status}")
    print()

    m = result.metrics
    print("Results:")
    print(f"  Ticks: {m.total_ticks} ({m.degraded_ticks} degraded)")
    print(f"  Samples: {m.samples_retained} retained / {m.samples_recorded} recorded")
    print(f"  Final state: {m.final_state}")
    done = m.final_state == ControlState.IDLE_AFTER_ANNEAL.name
    print(f"  Anneal complete: {'✓' if done else '✗'}")
    print()

    print("Artifacts written to:")
    print(f"  {run_cfg.out_dir}/trace.csv")
    print(f"  {run_cfg.out_dir}/metrics.json")
    print(f"  {run_cfg.out_dir}/trace.json")
    print()
    print("=" * 70)


if __name__ == "__main__":
    main()
