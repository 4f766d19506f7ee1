from types import SimpleNamespace

from observability import metrics
from models import ErrorKind
from observability.metrics import GovernorMetrics


def test_governor_metrics_reports(monkeypatch):
    """Metrics emit request, error, retry and cache figures."""

    calls: list[SimpleNamespace] = []

    class FakeCounter:
        def __init__(self, name: str) -> None:
            self.name = name

        def add(self, value: float, attributes=None) -> None:  # pragma: no cover
            calls.append(
                SimpleNamespace(
                    kind="counter", name=self.name, value=value, attrs=attributes
                )
            )

    class FakeGauge:
        def __init__(self, name: str) -> None:
            self.name = name

        def set(self, value: float) -> None:  # pragma: no cover - simple proxy
            calls.append(SimpleNamespace(kind="gauge", name=self.name, value=value))

    monkeypatch.setattr(metrics, "REQUESTS_TOTAL", FakeCounter("requests_total"))
    monkeypatch.setattr(metrics, "ERRORS_TOTAL", FakeCounter("errors_total"))
    monkeypatch.setattr(metrics, "CACHE_HITS_TOTAL", FakeCounter("cache_hits_total"))
    monkeypatch.setattr(metrics, "RETRIES_TOTAL", FakeCounter("retries_total"))
    monkeypatch.setattr(metrics, "QUEUE_DEPTH", FakeGauge("queue_depth"))
    monkeypatch.setattr(metrics, "ERROR_RATE", FakeGauge("error_rate"))
    monkeypatch.setattr(metrics, "RATE_429", FakeGauge("rate_429"))
    monkeypatch.setattr(metrics, "AVG_LATENCY", FakeGauge("avg_latency"))

    tracker = GovernorMetrics(window=60)
    tracker.record_request()
    tracker.record_error(is_429=True)
    tracker.record_request()
    tracker.record_latency(0.5)
    tracker.record_cache_hit()
    tracker.record_retry(ErrorKind.SERVER)
    tracker.record_queue_depth(3)

    assert tracker.error_rate == 0.5
    assert tracker.rate_429 == 0.5
    assert tracker.average_latency == 0.5
    assert tracker.cache_hits == 1
    assert tracker.retries == 1
    assert tracker.retries_by_kind == {"server": 1}
    retry_calls = [c for c in calls if c.name == "retries_total"]
    assert retry_calls[0].attrs == {"error_kind": "server"}

    counters = [c.name for c in calls if c.kind == "counter"]
    assert counters == [
        "requests_total",
        "errors_total",
        "requests_total",
        "cache_hits_total",
        "retries_total",
    ]
    gauges = {c.name: c.value for c in calls if c.kind == "gauge"}
    assert gauges["queue_depth"] == 3
    assert gauges["error_rate"] == 0.5
    assert gauges["avg_latency"] == 0.5


def test_empty_metrics_are_zero():
    tracker = GovernorMetrics()
    assert tracker.error_rate == 0.0
    assert tracker.rate_429 == 0.0
    assert tracker.average_latency == 0.0
