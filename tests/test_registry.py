import re
import threading

import pytest

from instance_monitor.errors import InvalidMetricError, MetricNotFoundError, RenderError
from instance_monitor.registry import MetricKind, MetricRegistry, format_value

LINE_RE = re.compile(r'^[a-zA-Z_:][a-zA-Z0-9_:]*(\{[a-zA-Z_][a-zA-Z0-9_]*="[^"]*"(,[a-zA-Z_][a-zA-Z0-9_]*="[^"]*")*\})? \S+$')


def test_register_creates_zero_valued_gauge(registry):
    registry.register("x", MetricKind.GAUGE)

    sample = registry.get("x")
    assert sample.kind is MetricKind.GAUGE
    assert sample.value == 0.0
    assert sample.labels == ()
    assert registry.export() == "x 0\n"


def test_register_is_idempotent(registry):
    registry.register("x")
    registry.add_label("x", "a", "1")
    registry.update("x", 3.5)
    before = registry.get("x")

    registry.register("x", MetricKind.GAUGE)

    assert registry.get("x") == before
    assert len(registry) == 1


@pytest.mark.parametrize("name", ["", "   ", "1abc", "bad-name", "with space"])
def test_register_rejects_invalid_names(registry, name):
    with pytest.raises(InvalidMetricError):
        registry.register(name)
    assert len(registry) == 0


def test_update_unregistered_raises_and_does_not_create(registry):
    with pytest.raises(MetricNotFoundError) as excinfo:
        registry.update("unregistered", 1.0)

    assert excinfo.value.name == "unregistered"
    assert "unregistered" not in registry
    assert registry.export() == "\n"


def test_add_label_unregistered_raises(registry):
    with pytest.raises(MetricNotFoundError):
        registry.add_label("missing", "a", "1")


def test_add_label_rejects_invalid_key(registry):
    registry.register("x")
    with pytest.raises(InvalidMetricError):
        registry.add_label("x", "bad-key", "1")


def test_labels_are_appended_in_order(registry):
    registry.register("x")
    registry.add_label("x", "a", "1")
    registry.add_label("x", "b", "2")

    assert registry.export() == 'x{a="1",b="2"} 0\n'


def test_duplicate_label_keys_are_rendered_as_is(registry):
    registry.register("x")
    registry.add_label("x", "a", "1")
    registry.add_label("x", "a", "2")

    assert registry.export() == 'x{a="1",a="2"} 0\n'


def test_label_values_are_escaped(registry):
    registry.register("x")
    registry.add_label("x", "path", 'C:\\dir "q"\nnext')

    assert registry.export() == 'x{path="C:\\\\dir \\"q\\"\\nnext"} 0\n'


def test_gauge_update_overwrites_and_refreshes_timestamp(registry):
    registry.register("x")
    created = registry.get("x").observed_at

    registry.update("x", 10.0)
    registry.update("x", 2.5)

    sample = registry.get("x")
    assert sample.value == 2.5
    assert sample.observed_at >= created


def test_export_end_to_end():
    registry = MetricRegistry()
    registry.register("cpu_usage", MetricKind.GAUGE)
    registry.register("memory_usage", MetricKind.GAUGE)
    registry.add_label("cpu_usage", "instance", "h1")
    registry.add_label("memory_usage", "instance", "h1")
    registry.update("cpu_usage", 12.4)
    registry.update("memory_usage", 63.891)

    assert registry.export() == (
        'cpu_usage{instance="h1"} 12.4\n'
        'memory_usage{instance="h1"} 63.891\n'
    )


def test_export_follows_registration_order(registry):
    for name in ("zeta", "alpha", "mid"):
        registry.register(name)

    assert registry.names() == ["zeta", "alpha", "mid"]
    assert [line.split(" ")[0] for line in registry.export().splitlines()] == ["zeta", "alpha", "mid"]


def test_export_wraps_unexpected_failures(registry, monkeypatch):
    registry.register("x")

    def broken(self):
        raise TypeError("boom")

    monkeypatch.setattr("instance_monitor.registry.Metric.to_prometheus", broken)
    with pytest.raises(RenderError):
        registry.export()


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.0, "0"),
        (42.0, "42"),
        (-3.0, "-3"),
        (12.4, "12.4"),
        (63.891, "63.891"),
        (float("nan"), "NaN"),
        (float("inf"), "+Inf"),
        (float("-inf"), "-Inf"),
    ],
)
def test_format_value(value, expected):
    assert format_value(value) == expected


def test_concurrent_updates_labels_and_exports_stay_parseable(registry):
    names = [f"gauge_{i}" for i in range(8)]
    labelled = names[:4]
    for name in names:
        registry.register(name)
        registry.add_label(name, "instance", "h1")

    errors = []
    exports = []
    start = threading.Barrier(len(names) + len(labelled) + 4)

    def writer(name):
        start.wait()
        try:
            for i in range(500):
                registry.update(name, i * 0.5)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    def labeller(name):
        start.wait()
        try:
            for i in range(100):
                registry.add_label(name, f"k{i}", f"v{i}")
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    def reader():
        start.wait()
        try:
            for _ in range(200):
                exports.append(registry.export())
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(name,)) for name in names]
    threads += [threading.Thread(target=labeller, args=(name,)) for name in labelled]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not errors
    assert len(exports) == 800
    for output in exports:
        assert output.endswith("\n")
        lines = output.splitlines()
        assert len(lines) == len(names)
        for line in lines:
            assert LINE_RE.match(line), line
            float(line.rsplit(" ", 1)[1])
            keys = re.findall(r'([a-zA-Z_][a-zA-Z0-9_]*)="', line)
            assert keys == ["instance"] + [f"k{i}" for i in range(len(keys) - 1)], line

    assert registry.get("gauge_0").value == 249.5
    assert len(registry.get("gauge_0").labels) == 101
    assert registry.get("gauge_0").labels[-1] == ("k99", "v99")
    assert registry.get("gauge_7").labels == (("instance", "h1"),)
