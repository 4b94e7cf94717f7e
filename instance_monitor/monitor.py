"""Background loop that samples the host and pushes readings into the registry."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .errors import MetricNotFoundError
from .registry import MetricKind, MetricRegistry
from .sampler import HostSampler

logger = logging.getLogger(__name__)

CPU_USAGE = "cpu_usage"
MEMORY_USAGE = "memory_usage"
UNKNOWN_INSTANCE = "unknown"
DEFAULT_DELAY_SECONDS = 5.0


def memory_percentage(used: int, total: int) -> float:
    """Return ``used`` as a percentage of ``total``; 0.0 when total is zero."""
    if total <= 0:
        return 0.0
    return 100.0 * used / total


def setup_metrics(registry: MetricRegistry, instance: str) -> None:
    """Register the built-in gauges and tag them with the instance label."""
    for name in (CPU_USAGE, MEMORY_USAGE):
        registry.register(name, MetricKind.GAUGE)
        registry.add_label(name, "instance", instance)


class SystemMonitor:
    def __init__(
        self,
        registry: MetricRegistry,
        sampler: HostSampler,
        delay: float = DEFAULT_DELAY_SECONDS,
        instance: Optional[str] = None,
    ):
        self.registry = registry
        self.sampler = sampler
        self.delay = delay
        self.instance = instance
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._labelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _resolve_instance(self) -> str:
        if self.instance:
            return self.instance
        try:
            address = self.sampler.resolve_instance_address()
        except Exception:  # pylint: disable=broad-except
            logger.warning("Instance address lookup failed", exc_info=True)
            address = None
        return address or UNKNOWN_INSTANCE

    def prepare(self) -> str:
        """Register the gauges once and return the instance label in use."""
        if not self._labelled:
            self.instance = self._resolve_instance()
            setup_metrics(self.registry, self.instance)
            self._labelled = True
        return self.instance

    def _push(self, name: str, value: float) -> None:
        try:
            self.registry.update(name, value)
        except MetricNotFoundError as exc:
            logger.error("Error updating %s: %s", name, exc)

    async def collect_once(self) -> None:
        try:
            snapshot = await asyncio.to_thread(self.sampler.sample)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Host sampling failed; skipping this cycle")
            return

        cpu_usage = float(snapshot.cpu_busy_percent)
        memory_usage = memory_percentage(snapshot.memory_used, snapshot.memory_total)
        self._push(CPU_USAGE, cpu_usage)
        self._push(MEMORY_USAGE, memory_usage)
        logger.debug("Sampled cpu=%.1f%% memory=%.1f%%", cpu_usage, memory_usage)

    async def run(self) -> None:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        stop_event = self._stop_event

        while not stop_event.is_set():
            await self.collect_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.delay)
            except asyncio.TimeoutError:
                pass

    def start(self) -> asyncio.Task:
        """Spawn the sampling loop on the running event loop."""
        if self.running:
            return self._task
        instance = self.prepare()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(), name="instance-monitor-sampler")
        logger.info(
            "System monitor started: sampling every %.1fs as instance %s",
            self.delay,
            instance,
        )
        return self._task

    async def stop(self, timeout: float = 1.0) -> None:
        task = self._task
        if task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
        logger.info("System monitor stopped")
