from __future__ import annotations


class AnnealCtlError(Exception):
    """Base class for all annealctl errors."""


class InvalidCommandError(AnnealCtlError):
    """
    A malformed operator command (SetTarget / StartAnneal).

    Raised during validation; the controller rejects the command and leaves
    the session state unchanged.
    """


class ConfigError(AnnealCtlError):
    """Invalid configuration value or configuration file."""


class HardwareError(AnnealCtlError):
    """A hardware handle could not be acquired at startup."""
