"""
Status snapshot decoded from Kibana's /api/status?extended document.

Only the twelve scalar fields the exporter publishes are kept. Unknown
keys are ignored and anything missing (or null) falls back to zero.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Mapping

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


@dataclass
class StatusSnapshot:
    """A single point-in-time reading of a Kibana instance."""

    # "green" means healthy, anything else is degraded or unknown
    overall_state: str = ""

    concurrent_connections: int = 0

    # Process
    uptime_in_millis: int = 0
    heap_total_in_bytes: int = 0
    heap_used_in_bytes: int = 0

    # OS load averages
    load_1m: float = 0.0
    load_5m: float = 0.0
    load_15m: float = 0.0

    # Response times (milliseconds)
    response_avg_in_millis: float = 0.0
    response_max_in_millis: float = 0.0

    # Request counters
    requests_disconnects: int = 0
    requests_total: int = 0

    @property
    def healthy(self) -> bool:
        return self.overall_state.lower() == "green"

    @classmethod
    def from_dict(cls, doc: Any) -> "StatusSnapshot":
        """Decode a parsed status document.

        Raises TypeError naming the offending path when a value has the
        wrong shape (e.g. a string where a number is expected).
        """
        root = _section(doc, "")
        status = _section(root.get("status"), "status")
        overall = _section(status.get("overall"), "status.overall")

        metrics = _section(root.get("metrics"), "metrics")
        process = _section(metrics.get("process"), "metrics.process")
        memory = _section(process.get("memory"), "metrics.process.memory")
        heap = _section(memory.get("heap"), "metrics.process.memory.heap")
        os_ = _section(metrics.get("os"), "metrics.os")
        load = _section(os_.get("load"), "metrics.os.load")
        resp = _section(metrics.get("response_times"), "metrics.response_times")
        reqs = _section(metrics.get("requests"), "metrics.requests")

        return cls(
            overall_state=_str(overall.get("state"), "status.overall.state"),
            concurrent_connections=_int(metrics.get("concurrent_connections"), "metrics.concurrent_connections"),
            uptime_in_millis=_int(process.get("uptime_in_millis"), "metrics.process.uptime_in_millis"),
            heap_total_in_bytes=_int(heap.get("total_in_bytes"), "metrics.process.memory.heap.total_in_bytes"),
            heap_used_in_bytes=_int(heap.get("used_in_bytes"), "metrics.process.memory.heap.used_in_bytes"),
            load_1m=_float(load.get("1m"), "metrics.os.load.1m"),
            load_5m=_float(load.get("5m"), "metrics.os.load.5m"),
            load_15m=_float(load.get("15m"), "metrics.os.load.15m"),
            response_avg_in_millis=_float(resp.get("avg_in_millis"), "metrics.response_times.avg_in_millis"),
            response_max_in_millis=_float(resp.get("max_in_millis"), "metrics.response_times.max_in_millis"),
            requests_disconnects=_int(reqs.get("disconnects"), "metrics.requests.disconnects"),
            requests_total=_int(reqs.get("total"), "metrics.requests.total"),
        )

    def summary(self) -> dict:
        """Return a plain dict for display."""
        record = asdict(self)
        record["healthy"] = self.healthy
        return record


def _section(value: Any, path: str) -> Mapping[str, Any]:
    if value is None and path:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"expected an object at {path or '<root>'}, got {type(value).__name__}")
    return value


def _str(value: Any, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"expected a string at {path}, got {type(value).__name__}")
    return value


def _int(value: Any, path: str) -> int:
    if value is None:
        return 0
    # bool is an int subclass, but true/false is never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer at {path}, got {type(value).__name__}")
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise TypeError(f"integer at {path} is out of the 64-bit range")
    return value


def _float(value: Any, path: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number at {path}, got {type(value).__name__}")
    try:
        result = float(value)
    except OverflowError:
        raise TypeError(f"number at {path} is too large for a float") from None
    # json accepts NaN, Infinity and 1e400 (which parses to inf)
    if not math.isfinite(result):
        raise TypeError(f"number at {path} is not finite")
    return result
