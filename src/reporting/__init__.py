"""Usage reporting."""

from reporting.telemetry import TelemetryEvent, TelemetryReporter

__all__ = ['TelemetryEvent', 'TelemetryReporter']
