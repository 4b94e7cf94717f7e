"""Minimal host metrics exporter."""
from importlib.metadata import version

from .api import create_app
from .registry import MetricKind, MetricRegistry

__all__ = ["create_app", "MetricKind", "MetricRegistry", "__version__"]

try:
    __version__ = version("instance-monitor")
except Exception:  # pragma: no cover - fallback when package metadata missing
    __version__ = "0.1.0"
