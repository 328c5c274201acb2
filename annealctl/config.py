from __future__ import annotations

import math
import tomllib
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from pathlib import Path

from .control.interfaces import PIDGains
from .errors import ConfigError


def _clean_path_name(path_name: str) -> str:
    # Remove unsafe characters from directory name
    cleaned = [c if (c.isalnum() or c in ("-", "_")) else "_" for c in path_name]
    return "".join(cleaned).strip("_")


# slots are used to enfore good interface hygiene, disables dynamic attribute creation.
@dataclass(frozen=True, slots=True)
class RunConfig:
    """
    RunConfig

    Definitions for one controller session

    Params:
    - name (str) : session name, used for the artifact directory
    - out_dir (Path) : output directory for the trace log and artifacts
                       default: artifacts/runs/<timestamp>_<name>
    - duration_s (float|None) : stop the session after this long (None = until exit)
    """
    name: str
    out_dir: Path
    duration_s: float | None = None

    @staticmethod
    def from_args(
        *,
        name: str,
        out_dir: str | None,
        duration_s: float | None = None,
    ) -> "RunConfig":
        if not isinstance(name, str) or not name:
            raise ConfigError("name must be a non-empty string")
        if duration_s is not None and not duration_s > 0:
            raise ConfigError("duration_s must be > 0")

        if out_dir is not None:
            out_path = Path(out_dir)
        else:
            # artifacts/runs/<UTC YYYYmmdd_HHMMSS>_<name>
            ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            clean_name = _clean_path_name(name)

            # Check if name is empty after cleaning
            if not clean_name:
                clean_name = "session"
            out_path = Path("artifacts").joinpath(f"runs/{ts}_{clean_name}")

        return RunConfig(
            name=name,
            out_dir=out_path,
            duration_s=None if duration_s is None else float(duration_s),
        )


@dataclass(frozen=True, slots=True)
class ControllerConfig:
    """
    Process-wide control configuration, fixed at startup.

    Defaults are the values the rig was commissioned with.
    """
    # PID gains
    kp: float = 0.01                     # Proportional gain (V/°C)
    ki: float = 0.0                      # Integral gain (V/(°C·s))
    kd: float = 0.125                    # Derivative gain (V·s/°C)

    # Actuator
    v_max: float = 1.3                   # Hard voltage ceiling (V)

    # Stability certification
    stability_duration_s: float = 30.0   # Observation window length (s)
    stability_stdev_c: float = 0.06      # Max sample stdev for "stable" (°C)
    stability_min_samples: int = 10      # Samples needed before judging
    tolerance_c: float = 0.4             # Tracking band around target (±°C)

    # Scheduling and recording
    tick_period_s: float = 0.5           # Control loop period (s)
    recorder_capacity: int = 10000       # In-memory sample ceiling
    io_timeout_s: float = 2.0            # Per hardware call timeout (s)

    # Annealing
    anneal_temp_tolerance_c: float = 0.1 # Overshoot band for temperature end mode
    require_stable_for_anneal: bool = True

    # Initial voltage guess: ((temp_c, volts), ...) sorted by temperature
    guess_table: tuple[tuple[float, float], ...] = ((30.0, 0.50), (55.0, 1.25))

    @property
    def gains(self) -> PIDGains:
        return PIDGains(kp=self.kp, ki=self.ki, kd=self.kd)

    def validate(self) -> "ControllerConfig":
        """Raise ConfigError on any out-of-range value; return self."""
        for name in ("kp", "ki", "kd"):
            if not math.isfinite(getattr(self, name)):
                raise ConfigError(f"{name} must be finite")
        if not self.v_max > 0:
            raise ConfigError("v_max must be > 0")
        if not self.stability_duration_s > 0:
            raise ConfigError("stability_duration_s must be > 0")
        if not self.stability_stdev_c > 0:
            raise ConfigError("stability_stdev_c must be > 0")
        if self.stability_min_samples < 2:
            raise ConfigError("stability_min_samples must be >= 2")
        if not self.tolerance_c > 0:
            raise ConfigError("tolerance_c must be > 0")
        if not self.tick_period_s > 0:
            raise ConfigError("tick_period_s must be > 0")
        if self.recorder_capacity < 2:
            raise ConfigError("recorder_capacity must be >= 2")
        if not self.io_timeout_s > 0:
            raise ConfigError("io_timeout_s must be > 0")
        if self.anneal_temp_tolerance_c < 0:
            raise ConfigError("anneal_temp_tolerance_c must be >= 0")
        if len(self.guess_table) < 2:
            raise ConfigError("guess_table needs at least two points")
        temps = [t for t, _ in self.guess_table]
        if any(b <= a for a, b in zip(temps, temps[1:])):
            raise ConfigError("guess_table temperatures must be strictly increasing")
        return self


@dataclass(frozen=True, slots=True)
class HardwareConfig:
    """
    Serial settings for the power supply and the thermometer front-end.
    """
    # Power supply (SCPI over serial)
    psu_port: str = "COM5"
    psu_baudrate: int = 115200
    psu_current_limit_a: float = 6.0     # Current limit set at startup (A)
    psu_command_delay_s: float = 0.05    # Settle time after each command (s)

    # Thermometer (analog front-end streaming volts over serial)
    daq_port: str = "COM4"
    daq_baudrate: int = 9600
    daq_burst_samples: int = 20          # Raw readings averaged per request
    daq_volts_to_temp: float = 10.0      # °C per volt


def _build(cls, table: dict, section: str):
    known = {f.name for f in fields(cls)}
    unknown = set(table) - known
    if unknown:
        raise ConfigError(f"unknown key(s) in [{section}]: {', '.join(sorted(unknown))}")
    values = dict(table)
    if "guess_table" in values:
        values["guess_table"] = tuple(
            (float(t), float(v)) for t, v in values["guess_table"]
        )
    return replace(cls(), **values)


def load_config(path: str | Path) -> tuple[ControllerConfig, HardwareConfig]:
    """
    Load controller and hardware settings from a TOML file.

    Both ``[controller]`` and ``[hardware]`` tables are optional; missing
    keys keep their defaults.

    Example:
        [controller]
        kp = 0.01
        v_max = 1.3
        guess_table = [[30.0, 0.50], [55.0, 1.25]]

        [hardware]
        psu_port = "/dev/ttyUSB0"
    """
    path = Path(path)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e

    unknown = set(data) - {"controller", "hardware"}
    if unknown:
        raise ConfigError(f"unknown table(s): {', '.join(sorted(unknown))}")

    try:
        controller = _build(ControllerConfig, data.get("controller", {}), "controller")
        hardware = _build(HardwareConfig, data.get("hardware", {}), "hardware")
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value in {path}: {e}") from e

    return controller.validate(), hardware
