"""
Prometheus collector that scrapes Kibana on every pull.

The registry calls collect() whenever /metrics is requested. Each call
runs one full scrape -> map -> emit cycle under a lock, so overlapping
pulls are serialized rather than sharing (or mixing) a scrape. A failed
scrape emits nothing and leaves the gauges at their previous values.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, NamedTuple

from prometheus_client import REGISTRY, CollectorRegistry, Gauge
from prometheus_client.metrics_core import Metric

from kibana_exporter.collector.base import StatusSource
from kibana_exporter.config import NAMESPACE
from kibana_exporter.errors import ScrapeError
from kibana_exporter.metrics import StatusSnapshot

log = logging.getLogger(__name__)


class Instrument(NamedTuple):
    name: str
    help_text: str
    value: Callable[[StatusSnapshot], float]


# Emission order. Not meaningful to Prometheus, but kept stable.
INSTRUMENTS: tuple = (
    Instrument("status", "Kibana overall status",
               lambda s: 1.0 if s.healthy else 0.0),
    Instrument("concurrent_connections", "Kibana Concurrent Connections",
               lambda s: float(s.concurrent_connections)),
    Instrument("millis_uptime", "Kibana uptime in milliseconds",
               lambda s: float(s.uptime_in_millis)),
    Instrument("heap_max_in_bytes", "Kibana Heap maximum in bytes",
               lambda s: float(s.heap_total_in_bytes)),
    Instrument("heap_used_in_bytes", "Kibana Heap usage in bytes",
               lambda s: float(s.heap_used_in_bytes)),
    Instrument("os_load_1m", "Kibana load average 1m",
               lambda s: float(s.load_1m)),
    Instrument("os_load_5m", "Kibana load average 5m",
               lambda s: float(s.load_5m)),
    Instrument("os_load_15m", "Kibana load average 15m",
               lambda s: float(s.load_15m)),
    Instrument("response_average", "Kibana average response time in milliseconds",
               lambda s: float(s.response_avg_in_millis)),
    Instrument("response_max", "Kibana maximum response time in milliseconds",
               lambda s: float(s.response_max_in_millis)),
    Instrument("requests_disconnects", "Kibana request disconnections count",
               lambda s: float(s.requests_disconnects)),
    Instrument("requests_total", "Kibana total request count",
               lambda s: float(s.requests_total)),
)


class KibanaExporter:
    """Custom collector for prometheus_client registries."""

    def __init__(self, source: StatusSource, namespace: str = NAMESPACE):
        self._source = source
        self._lock = threading.Lock()
        # Not registered on their own -- the exporter is the registered collector
        self._gauges: Dict[str, Gauge] = {
            inst.name: Gauge(inst.name, inst.help_text, namespace=namespace, registry=None)
            for inst in INSTRUMENTS
        }

    def describe(self) -> List[Metric]:
        """Descriptors for the twelve gauges. Never scrapes."""
        families: List[Metric] = []
        for gauge in self._gauges.values():
            families.extend(gauge.describe())
        return families

    def collect(self) -> List[Metric]:
        with self._lock:
            try:
                snapshot = self._source.scrape()
            except ScrapeError as e:
                log.error("error while scraping metrics from Kibana: %s", e)
                return []

            try:
                values = self.map_snapshot(snapshot)
            except (TypeError, ValueError, ArithmeticError) as e:
                log.error("error while parsing metrics from Kibana: %s", e)
                return []

            for name, value in values.items():
                self._gauges[name].set(value)

            families: List[Metric] = []
            for gauge in self._gauges.values():
                families.extend(gauge.collect())
            return families

    def values(self) -> Dict[str, float]:
        """Current value of every gauge, keyed by short name."""
        return {
            name: gauge.collect()[0].samples[0].value
            for name, gauge in self._gauges.items()
        }

    @staticmethod
    def map_snapshot(snapshot: StatusSnapshot) -> Dict[str, float]:
        # Compute everything before touching a gauge so a bad field can't
        # leave a half-updated set behind.
        return {inst.name: inst.value(snapshot) for inst in INSTRUMENTS}


def register(exporter: KibanaExporter, registry: CollectorRegistry = REGISTRY) -> KibanaExporter:
    registry.register(exporter)
    return exporter
