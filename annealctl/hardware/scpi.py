"""
Serial instrument adapters for the annealing rig.

- ScpiPowerSupply: programmable DC supply driven by line-terminated SCPI
  commands (``CURR``, ``VOLT``, ``OUTP``).
- SerialThermometer: analog front-end that streams one voltage reading per
  line; a burst of readings is averaged and scaled to °C.

Both follow the TemperatureSource / Actuator protocols: transport faults
are logged and reported as a failed command or a missing reading, never
raised, except while acquiring the port at startup (HardwareError).
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

import serial

from annealctl.config import HardwareConfig
from annealctl.errors import HardwareError

logger = logging.getLogger(__name__)

SerialFactory = Callable[..., serial.Serial]


class ScpiPowerSupply:
    """
    SCPI power supply on a serial port.

    On open the current limit is programmed and the output enabled; each
    set_voltage() writes ``VOLT <v>`` with four decimals.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        *,
        current_limit_a: float = 6.0,
        command_delay_s: float = 0.05,
        timeout_s: float = 1.0,
        serial_factory: SerialFactory = serial.Serial,
    ):
        self.port = port
        self.baudrate = baudrate
        self.current_limit_a = current_limit_a
        self.command_delay_s = command_delay_s
        self.timeout_s = timeout_s
        self._serial_factory = serial_factory
        self._serial: serial.Serial | None = None

    @classmethod
    def from_config(cls, cfg: HardwareConfig, **kwargs) -> "ScpiPowerSupply":
        return cls(
            cfg.psu_port,
            cfg.psu_baudrate,
            current_limit_a=cfg.psu_current_limit_a,
            command_delay_s=cfg.psu_command_delay_s,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self._serial = self._serial_factory(
                self.port, self.baudrate, timeout=self.timeout_s,
                write_timeout=self.timeout_s,
            )
        except (serial.SerialException, OSError) as e:
            raise HardwareError(f"cannot open power supply on {self.port}: {e}") from e
        logger.info("Power supply connected on %s", self.port)

        if not (self.send(f"CURR {self.current_limit_a:.2f}") and self.send("OUTP ON")):
            self.close()
            raise HardwareError(f"power supply on {self.port} rejected setup commands")

    def send(self, command: str) -> bool:
        """Write one SCPI line. Returns False on a transport fault."""
        if not self.is_open:
            logger.warning("SCPI command dropped, port closed: %s", command)
            return False
        try:
            self._serial.write(f"{command}\n".encode("ascii"))
            self._serial.flush()
        except (serial.SerialException, OSError) as e:
            logger.warning("SCPI command failed: %s (%s)", command, e)
            return False
        if self.command_delay_s > 0:
            time.sleep(self.command_delay_s)
        return True

    def set_voltage(self, volts: float) -> bool:
        return self.send(f"VOLT {volts:.4f}")

    def output_off(self) -> bool:
        return self.send("OUTP OFF")

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing power supply port: %s", e)
        self._serial = None
        logger.info("Power supply disconnected")


class SerialThermometer:
    """
    Thermometer front-end streaming voltages over serial.

    Each request discards stale input, reads `burst_samples` lines and
    returns ``mean(volts) * volts_to_temp``.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        *,
        burst_samples: int = 20,
        volts_to_temp: float = 10.0,
        timeout_s: float = 1.0,
        serial_factory: SerialFactory = serial.Serial,
    ):
        if burst_samples < 1:
            raise ValueError("burst_samples must be >= 1")
        self.port = port
        self.baudrate = baudrate
        self.burst_samples = burst_samples
        self.volts_to_temp = volts_to_temp
        self.timeout_s = timeout_s
        self._serial_factory = serial_factory
        self._serial: serial.Serial | None = None

    @classmethod
    def from_config(cls, cfg: HardwareConfig, **kwargs) -> "SerialThermometer":
        return cls(
            cfg.daq_port,
            cfg.daq_baudrate,
            burst_samples=cfg.daq_burst_samples,
            volts_to_temp=cfg.daq_volts_to_temp,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self._serial = self._serial_factory(
                self.port, self.baudrate, timeout=self.timeout_s,
            )
        except (serial.SerialException, OSError) as e:
            raise HardwareError(f"cannot open thermometer on {self.port}: {e}") from e
        logger.info("Thermometer connected on %s", self.port)

    def read_averaged_temperature(self) -> float | None:
        if not self.is_open:
            return None
        try:
            self._serial.reset_input_buffer()
            readings = []
            for _ in range(self.burst_samples):
                line = self._serial.readline()
                if not line:
                    logger.warning("Temperature reading failed: timeout")
                    return None
                readings.append(float(line.decode("ascii", errors="replace").strip()))
        except (serial.SerialException, OSError) as e:
            logger.warning("Temperature reading failed: %s", e)
            return None
        except ValueError as e:
            logger.warning("Temperature reading failed: bad sample (%s)", e)
            return None

        temp_c = sum(readings) / len(readings) * self.volts_to_temp
        if not math.isfinite(temp_c):
            logger.warning("Temperature reading failed: non-finite average")
            return None
        return temp_c

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing thermometer port: %s", e)
        self._serial = None
        logger.info("Thermometer disconnected")
