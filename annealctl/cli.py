"""
Command-line interface for annealctl.

This module provides the CLI entry point for running an annealing session,
either against the real rig (SCPI power supply + serial thermometer) or a
simulated one.

Usage:
    # Real rig, interactive console for commands
    annealctl --psu-port /dev/ttyUSB0 --daq-port /dev/ttyUSB1

    # Simulated rig, unattended: stabilize at 50°C then ramp down to 1.0 V
    annealctl --simulate --fast --target 50 --anneal volt 1.0 -0.005 0.5

Entry points:
    - annealctl: Direct CLI command (from pyproject.toml)
    - python -m annealctl.cli: Module execution
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from .config import ControllerConfig, HardwareConfig, RunConfig, load_config
from .errors import ConfigError, HardwareError
from .session.runner import SessionRunner

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser for the CLI.

    Returns:
        Configured ArgumentParser with all supported options.
    """
    p = argparse.ArgumentParser(
        prog="annealctl",
        description="annealctl: PID temperature regulation and anneal ramps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  annealctl --simulate --target 45
      Simulated rig, hold 45°C; type commands on stdin (try 'help')

  annealctl --simulate --fast --target 50 --anneal volt 1.0 -0.005 0.5 --plot
      Unattended simulated anneal, faster than real time, with a plot

  annealctl --config rig.toml --psu-port COM5 --daq-port COM4
      Real rig with settings from a TOML file
""",
    )

    # ─────────────────────────────────────────────────────────────────
    # Session parameters
    # ─────────────────────────────────────────────────────────────────
    p.add_argument(
        "--name",
        type=str,
        default="anneal",
        help="Session name for artifact directory (default: %(default)s)",
    )
    p.add_argument(
        "--out-dir",
        type=str,
        default=None,
        help="Output directory (default: artifacts/runs/<timestamp>_<name>)",
    )
    p.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop the session after this many seconds (default: until exit)",
    )
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="TOML file with [controller] and [hardware] tables",
    )
    p.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: %(default)s)",
    )
    p.add_argument(
        "--plot",
        action="store_true",
        help="Save plot.png of the trace at session end (requires matplotlib)",
    )
    p.add_argument(
        "--no-console",
        action="store_true",
        help="Do not read operator commands from stdin",
    )

    # ─────────────────────────────────────────────────────────────────
    # Scripted operator
    # ─────────────────────────────────────────────────────────────────
    p.add_argument(
        "--target",
        type=float,
        default=None,
        help="Initial target temperature (°C)",
    )
    p.add_argument(
        "--anneal",
        nargs=4,
        metavar=("MODE", "END", "STEP_V", "PERIOD_MIN"),
        default=None,
        help="Start this anneal once stable (MODE is temp or volt); exit when done",
    )
    p.add_argument(
        "--hold",
        type=float,
        default=0.0,
        help="Seconds to hold at the stable setpoint before annealing (default: %(default)s)",
    )

    # ─────────────────────────────────────────────────────────────────
    # Hardware
    # ─────────────────────────────────────────────────────────────────
    p.add_argument("--psu-port", type=str, default=None, help="Power supply serial port")
    p.add_argument("--daq-port", type=str, default=None, help="Thermometer serial port")
    p.add_argument(
        "--simulate",
        action="store_true",
        help="Use the simulated rig instead of serial instruments",
    )
    p.add_argument(
        "--fast",
        action="store_true",
        help="With --simulate: run on a virtual clock, as fast as possible",
    )
    p.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Simulated sensor noise seed (default: %(default)s)",
    )
    p.add_argument(
        "--initial-temp",
        type=float,
        default=None,
        help="Simulated starting temperature (default: ambient)",
    )

    return p


def _build_hardware(args, hw: HardwareConfig, clock):
    if args.simulate:
        from .hardware.simulated import SimulatedPowerSupply, SimulatedRig, SimulatedThermometer

        rig = SimulatedRig(initial_temp_c=args.initial_temp, seed=args.seed, clock=clock)
        return SimulatedThermometer(rig), SimulatedPowerSupply(rig)

    # Import here to avoid requiring pyserial for simulated runs
    from dataclasses import replace

    from .hardware.scpi import ScpiPowerSupply, SerialThermometer

    if args.psu_port:
        hw = replace(hw, psu_port=args.psu_port)
    if args.daq_port:
        hw = replace(hw, daq_port=args.daq_port)
    return SerialThermometer.from_config(hw), ScpiPowerSupply.from_config(hw)


def _build_operator(args):
    from .scenarios import hold_then_anneal, set_target_once

    if args.anneal is not None:
        mode, end, step, period = args.anneal
        return hold_then_anneal(
            args.target,
            mode,
            float(end),
            float(step),
            float(period),
            hold_s=args.hold,
        )
    if args.target is not None:
        return set_target_once(args.target)
    return None


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point.

    Parses arguments, acquires the rig, runs the session and writes
    artifacts to disk.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for a clean session, 1 after a fatal fault,
        2 for configuration or hardware setup errors
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    if args.fast and not args.simulate:
        parser.error("--fast requires --simulate")
    if args.anneal is not None and args.target is None:
        parser.error("--anneal requires --target")
    if args.fast and args.duration is None and args.anneal is None:
        parser.error("--fast needs --duration or --anneal to end the session")
    for value in args.anneal or ():
        if value.lower() in ("temp", "volt", "temperature", "voltage"):
            continue
        try:
            float(value)
        except ValueError:
            parser.error(f"--anneal: invalid value {value!r}")

    # ─────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────
    try:
        if args.config is not None:
            controller_cfg, hardware_cfg = load_config(args.config)
        else:
            controller_cfg, hardware_cfg = ControllerConfig().validate(), HardwareConfig()
        run_cfg = RunConfig.from_args(
            name=args.name, out_dir=args.out_dir, duration_s=args.duration
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.fast:
        from .session.scheduler import VirtualClock

        virtual = VirtualClock()
        clock, sleep = virtual, virtual.sleep
    else:
        import time

        clock, sleep = time.monotonic, None

    source, actuator = _build_hardware(args, hardware_cfg, clock)

    # ─────────────────────────────────────────────────────────────────
    # Run the session
    # ─────────────────────────────────────────────────────────────────
    interactive = not args.no_console and not args.fast
    on_status = None
    if interactive:
        from .console import StatusPrinter

        on_status = StatusPrinter()

    try:
        with SessionRunner(
            run_cfg,
            controller_cfg,
            source,
            actuator,
            operator=_build_operator(args),
            on_status=on_status,
            clock=clock,
            sleep=sleep,
            guard_io=not args.fast,
        ) as runner:
            def _on_signal(signum, frame):
                logger.warning("Signal %d received, stopping", signum)
                runner.stop()

            previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}

            if interactive:
                from .console import HELP, ConsoleReader

                print(HELP)
                ConsoleReader(runner.controller.submit).start()

            try:
                result = runner.run()
            finally:
                for sig, handler in previous.items():
                    signal.signal(sig, handler)
    except HardwareError as e:
        print(f"Hardware error: {e}", file=sys.stderr)
        return 2

    # ─────────────────────────────────────────────────────────────────
    # Print summary to stdout
    # ─────────────────────────────────────────────────────────────────
    m = result.metrics
    print(f"{m.session_name}: ", end="")
    print(f"ticks={m.total_ticks} ", end="")
    print(f"degraded={m.degraded_ticks} ", end="")
    print(f"samples={m.samples_retained}/{m.samples_recorded} ", end="")
    print(f"state={m.final_state}", end="")
    print(f" -> {run_cfg.out_dir}")

    if args.plot and result.samples:
        from .session.plotting import plot_trace

        try:
            path = plot_trace(result.samples, run_cfg.out_dir / "plot.png",
                              title=f"Annealing session: {m.session_name}")
            print(f"Plot saved to: {path}")
        except RuntimeError as e:
            print(f"Plot skipped: {e}", file=sys.stderr)

    if m.fault is not None:
        print(f"Session aborted: {m.fault}", file=sys.stderr)
        return 1
    return 0


# Allow module execution: python -m annealctl.cli
if __name__ == "__main__":
    sys.exit(main())
