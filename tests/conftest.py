import pytest

from instance_monitor.config import Settings, get_settings
from instance_monitor.registry import MetricRegistry
from instance_monitor.sampler import HostSnapshot


class FakeSampler:
    """Deterministic stand-in for the psutil-backed host sampler."""

    def __init__(self, snapshots=None, address="10.0.0.5"):
        self.snapshots = list(snapshots or [HostSnapshot(12.4, 63891, 100000)])
        self.address = address
        self.calls = 0

    def sample(self):
        snapshot = self.snapshots[min(self.calls, len(self.snapshots) - 1)]
        self.calls += 1
        if isinstance(snapshot, Exception):
            raise snapshot
        return snapshot

    def resolve_instance_address(self):
        if isinstance(self.address, Exception):
            raise self.address
        return self.address


@pytest.fixture()
def registry():
    return MetricRegistry()


@pytest.fixture()
def fake_sampler():
    return FakeSampler()


@pytest.fixture()
def settings():
    return Settings(host="127.0.0.1", port=8080, delay=60.0, log_level="error")


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
