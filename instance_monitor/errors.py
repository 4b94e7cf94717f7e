"""Exception hierarchy shared by the registry, sampling loop, and HTTP layer."""
from __future__ import annotations


class MonitorError(Exception):
    """Base class for all instance monitor errors."""


class MetricNotFoundError(MonitorError, KeyError):
    """An operation referenced a metric name that was never registered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"metric not registered: {self.name!r}"


class InvalidMetricError(MonitorError, ValueError):
    """A metric name or label key was rejected at registration time."""


class RenderError(MonitorError):
    """Building the exposition text failed."""


class ConfigError(MonitorError, ValueError):
    """A configuration value could not be parsed."""


class ServerStartError(MonitorError):
    """The HTTP listener could not be bound or the server failed to start."""
