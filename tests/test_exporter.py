"""
Tests for KibanaExporter: mapping, emission order, failure handling and
serialization of concurrent collections.
"""

import json
import logging
import threading
import time

import httpx
from prometheus_client import CollectorRegistry

from kibana_exporter.collector.base import StatusSource
from kibana_exporter.collector.kibana_client import KibanaFetcher
from kibana_exporter.config import ExporterConfig
from kibana_exporter.errors import TransportError, UpstreamStatusError
from kibana_exporter.exporter import INSTRUMENTS, KibanaExporter, register
from kibana_exporter.metrics import StatusSnapshot
from kibana_exporter.mock.fake_kibana_server import build_status_document

METRIC_NAMES = [
    "status",
    "concurrent_connections",
    "millis_uptime",
    "heap_max_in_bytes",
    "heap_used_in_bytes",
    "os_load_1m",
    "os_load_5m",
    "os_load_15m",
    "response_average",
    "response_max",
    "requests_disconnects",
    "requests_total",
]


def _make_snapshot(**overrides) -> StatusSnapshot:
    defaults = dict(
        overall_state="green",
        concurrent_connections=5,
        uptime_in_millis=1000,
        heap_total_in_bytes=2000,
        heap_used_in_bytes=1000,
        load_1m=1.0,
        load_5m=2.0,
        load_15m=3.0,
        response_avg_in_millis=1.5,
        response_max_in_millis=9.9,
        requests_disconnects=2,
        requests_total=50,
    )
    defaults.update(overrides)
    return StatusSnapshot(**defaults)


class _StubSource(StatusSource):
    """Hands out queued results in order; exceptions are raised."""

    def __init__(self, *results, delay: float = 0.0):
        self._results = list(results)
        self._delay = delay
        self._guard = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = 0

    def scrape(self) -> StatusSnapshot:
        with self._guard:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            result = self._results[self.calls % len(self._results)]
            self.calls += 1
        try:
            time.sleep(self._delay)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            with self._guard:
                self.in_flight -= 1

    def name(self) -> str:
        return "stub"


def _emitted(families) -> dict:
    return {f.samples[0].name: f.samples[0].value for f in families}


def test_worked_example_maps_exactly():
    exporter = KibanaExporter(_StubSource(_make_snapshot()))
    families = exporter.collect()

    assert _emitted(families) == {
        "kibana_status": 1.0,
        "kibana_concurrent_connections": 5.0,
        "kibana_millis_uptime": 1000.0,
        "kibana_heap_max_in_bytes": 2000.0,
        "kibana_heap_used_in_bytes": 1000.0,
        "kibana_os_load_1m": 1.0,
        "kibana_os_load_5m": 2.0,
        "kibana_os_load_15m": 3.0,
        "kibana_response_average": 1.5,
        "kibana_response_max": 9.9,
        "kibana_requests_disconnects": 2.0,
        "kibana_requests_total": 50.0,
    }


def test_emission_order_is_stable():
    exporter = KibanaExporter(_StubSource(_make_snapshot()))
    expected = [f"kibana_{name}" for name in METRIC_NAMES]

    for _ in range(3):
        assert [f.name for f in exporter.collect()] == expected


def test_all_twelve_are_gauges_with_help():
    exporter = KibanaExporter(_StubSource(_make_snapshot()))
    families = exporter.collect()

    assert len(families) == 12
    for family in families:
        assert family.type == "gauge"
        assert family.documentation.startswith("Kibana")
        assert len(family.samples) == 1


def test_table_has_one_instrument_per_field():
    names = [inst.name for inst in INSTRUMENTS]
    assert names == METRIC_NAMES
    assert len(set(names)) == len(names)


def test_status_mapping():
    for state, expected in [("green", 1.0), ("Green", 1.0), ("GREEN", 1.0),
                            ("yellow", 0.0), ("red", 0.0), ("", 0.0), ("green ", 0.0)]:
        values = KibanaExporter.map_snapshot(_make_snapshot(overall_state=state))
        assert values["status"] == expected, state


def test_mapping_is_deterministic():
    snap = _make_snapshot(load_5m=0.1 + 0.2, requests_total=2 ** 40)
    first = KibanaExporter.map_snapshot(snap)
    assert all(KibanaExporter.map_snapshot(snap) == first for _ in range(5))
    # widened, not rounded or clamped
    assert first["os_load_5m"] == 0.1 + 0.2
    assert first["requests_total"] == float(2 ** 40)


def test_describe_does_not_scrape():
    source = _StubSource(_make_snapshot())
    exporter = KibanaExporter(source)

    families = exporter.describe()

    assert source.calls == 0
    assert [f.name for f in families] == [f"kibana_{name}" for name in METRIC_NAMES]


def test_register_with_explicit_registry():
    source = _StubSource(_make_snapshot(requests_total=7))
    registry = CollectorRegistry()
    register(KibanaExporter(source), registry)

    # registering only describes
    assert source.calls == 0
    assert registry.get_sample_value("kibana_requests_total") == 7.0
    assert registry.get_sample_value("kibana_status") == 1.0


def test_custom_namespace():
    exporter = KibanaExporter(_StubSource(_make_snapshot()), namespace="kbn")
    assert all(f.name.startswith("kbn_") for f in exporter.collect())


def test_scrape_failure_emits_nothing_and_keeps_values(caplog):
    source = _StubSource(
        _make_snapshot(concurrent_connections=9),
        UpstreamStatusError("invalid response from Kibana status: 503 Service Unavailable", 503),
    )
    exporter = KibanaExporter(source)

    assert len(exporter.collect()) == 12
    before = exporter.values()

    with caplog.at_level(logging.ERROR, logger="kibana_exporter.exporter"):
        assert exporter.collect() == []

    assert exporter.values() == before
    assert before["concurrent_connections"] == 9.0
    assert "503" in caplog.text


def test_transport_failure_is_logged_not_raised(caplog):
    exporter = KibanaExporter(_StubSource(TransportError("connection refused")))

    with caplog.at_level(logging.ERROR):
        assert exporter.collect() == []

    assert "error while scraping metrics from Kibana" in caplog.text
    assert all(v == 0.0 for v in exporter.values().values())


def test_mapping_failure_leaves_gauges_untouched(caplog):
    good = _make_snapshot()
    bad = _make_snapshot(requests_total="not a number")
    exporter = KibanaExporter(_StubSource(good, bad))

    exporter.collect()
    before = exporter.values()

    with caplog.at_level(logging.ERROR):
        assert exporter.collect() == []

    assert exporter.values() == before
    assert "error while parsing metrics from Kibana" in caplog.text


def test_malformed_json_after_200_changes_nothing():
    bodies = [
        json.dumps(build_status_document(state="green", concurrent_connections=3, requests_total=10)).encode(),
        b'{"status": {"overall": {"state": "red"}}, "metrics": {"concurrent_connections": 99,',
    ]

    def handler(request):
        return httpx.Response(200, content=bodies.pop(0))

    config = ExporterConfig.create(kibana_uri="http://kibana:5601")
    fetcher = KibanaFetcher(config, transport=httpx.MockTransport(handler))
    registry = CollectorRegistry()
    exporter = register(KibanaExporter(fetcher), registry)

    assert registry.get_sample_value("kibana_concurrent_connections") == 3.0
    before = exporter.values()

    # second pull hits the broken body: nothing emitted, nothing changed
    assert exporter.collect() == []
    assert exporter.values() == before
    assert before["status"] == 1.0


def test_concurrent_collections_never_interleave():
    snap_a = _make_snapshot(overall_state="green", concurrent_connections=1, uptime_in_millis=100,
                            load_1m=0.1, requests_total=10)
    snap_b = _make_snapshot(overall_state="red", concurrent_connections=2, uptime_in_millis=200,
                            load_1m=0.2, requests_total=20)
    source = _StubSource(snap_a, snap_b, delay=0.05)
    exporter = KibanaExporter(source)

    results = []
    results_lock = threading.Lock()

    def pull():
        families = exporter.collect()
        with results_lock:
            results.append(_emitted(families))

    threads = [threading.Thread(target=pull) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert source.max_in_flight == 1
    assert source.calls == 4

    expected = [
        {f"kibana_{k}": v for k, v in KibanaExporter.map_snapshot(s).items()}
        for s in (snap_a, snap_b)
    ]
    for emitted in results:
        assert emitted in expected

    final = {f"kibana_{k}": v for k, v in exporter.values().items()}
    assert final in expected


def test_overflowing_field_emits_nothing_and_keeps_values(caplog):
    good = _make_snapshot(requests_total=50)
    huge = _make_snapshot(concurrent_connections=10 ** 400)
    exporter = KibanaExporter(_StubSource(good, huge))

    exporter.collect()
    before = exporter.values()

    with caplog.at_level(logging.ERROR):
        assert exporter.collect() == []

    assert exporter.values() == before
    assert before["requests_total"] == 50.0
    assert "error while parsing metrics from Kibana" in caplog.text


def test_overflowing_body_after_200_changes_nothing():
    bodies = [
        json.dumps(build_status_document(concurrent_connections=4)).encode(),
        b'{"metrics": {"os": {"load": {"1m": 1' + b"0" * 400 + b"}}}}",
    ]
    fetcher = KibanaFetcher(
        ExporterConfig.create(kibana_uri="http://kibana:5601"),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=bodies.pop(0))),
    )
    registry = CollectorRegistry()
    exporter = register(KibanaExporter(fetcher), registry)

    assert registry.get_sample_value("kibana_concurrent_connections") == 4.0
    before = exporter.values()

    # the second pull goes through the registry without raising; nothing emitted
    assert registry.get_sample_value("kibana_concurrent_connections") is None
    assert exporter.values() == before
