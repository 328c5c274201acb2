"""
AnnealCtl: closed-loop temperature regulation for a materials-annealing rig.

Features:
- PID regulation of a heater power supply with anti-windup and a hard
  voltage ceiling
- Stability certification over a fixed observation window
- Programmed, time-stepped anneal ramps ending on a temperature or voltage
- Bounded, crash-safe process trace (CSV log + JSON artifacts)
- Simulated rig for unattended runs and tests
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
