"""
Fake Kibana /api/status server for trying the exporter without Kibana.

    python -m kibana_exporter.mock.fake_kibana_server
    kibana-exporter --kibana.uri http://localhost:5601
"""

from __future__ import annotations

import json
import random
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer, ThreadingHTTPServer
from typing import Any, Dict, Optional


def build_status_document(
    state: str = "green",
    concurrent_connections: int = 0,
    uptime_in_millis: int = 0,
    heap_total_in_bytes: int = 0,
    heap_used_in_bytes: int = 0,
    load: tuple = (0.0, 0.0, 0.0),
    response_avg_in_millis: float = 0.0,
    response_max_in_millis: float = 0.0,
    requests_disconnects: int = 0,
    requests_total: int = 0,
) -> Dict[str, Any]:
    """Shape of Kibana's extended status response, trimmed to what we read
    plus a few extra keys real Kibana sends."""
    return {
        "name": "kibana",
        "version": {"number": "7.17.0", "build_snapshot": False},
        "status": {
            "overall": {"state": state, "title": state.capitalize(), "nickname": "Looking good"},
            "statuses": [],
        },
        "metrics": {
            "last_updated": "2026-01-01T00:00:00.000Z",
            "collection_interval_in_millis": 5000,
            "concurrent_connections": concurrent_connections,
            "process": {
                "uptime_in_millis": uptime_in_millis,
                "memory": {
                    "heap": {
                        "total_in_bytes": heap_total_in_bytes,
                        "used_in_bytes": heap_used_in_bytes,
                        "size_limit": 4345298944,
                    },
                    "resident_set_size_in_bytes": 301416448,
                },
                "event_loop_delay": 0.27,
                "pid": 8,
            },
            "os": {
                "load": {"1m": load[0], "5m": load[1], "15m": load[2]},
                "platform": "linux",
            },
            "response_times": {
                "avg_in_millis": response_avg_in_millis,
                "max_in_millis": response_max_in_millis,
            },
            "requests": {
                "disconnects": requests_disconnects,
                "total": requests_total,
                "status_codes": {"200": requests_total},
            },
        },
    }


class FakeKibanaState:
    """What the fake server answers with. Tests poke at this directly."""

    def __init__(self, seed: int = 42):
        self._lock = threading.Lock()
        self._rng = random.Random(seed)
        self._uptime = 0
        self._requests = 0
        self.status_code = 200
        self.body: Optional[bytes] = None  # fixed body overrides the generated one
        self.last_headers: Dict[str, str] = {}

    def next_body(self) -> bytes:
        with self._lock:
            if self.body is not None:
                return self.body

            self._uptime += 5000
            self._requests += self._rng.randint(1, 20)
            heap_total = 512 * 1024 * 1024
            doc = build_status_document(
                state="green" if self._rng.random() > 0.1 else "yellow",
                concurrent_connections=self._rng.randint(1, 30),
                uptime_in_millis=self._uptime,
                heap_total_in_bytes=heap_total,
                heap_used_in_bytes=int(heap_total * self._rng.uniform(0.3, 0.8)),
                load=tuple(round(self._rng.uniform(0.1, 2.0), 2) for _ in range(3)),
                response_avg_in_millis=round(self._rng.uniform(5, 50), 2),
                response_max_in_millis=round(self._rng.uniform(50, 500), 2),
                requests_disconnects=self._rng.randint(0, 2),
                requests_total=self._requests,
            )
            return json.dumps(doc).encode()


def _make_handler(state: FakeKibanaState):

    class _StatusHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            state.last_headers = {k.lower(): v for k, v in self.headers.items()}

            if self.path != "/api/status?extended":
                self.send_response(404)
                self.end_headers()
                return

            body = state.next_body() if state.status_code == 200 else b'{"error":"unavailable"}'
            self.send_response(state.status_code)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            pass  # Suppress request logging noise

    return _StatusHandler


def make_fake_server(host: str = "127.0.0.1", port: int = 0, state: Optional[FakeKibanaState] = None) -> HTTPServer:
    """Bind a fake server. Port 0 picks a free port; read it back from
    server.server_address. The state is available as server.state."""
    state = state or FakeKibanaState()
    server = ThreadingHTTPServer((host, port), _make_handler(state))
    server.daemon_threads = True
    server.state = state
    return server


def run_fake_server(host: str = "127.0.0.1", port: int = 5601):
    server = make_fake_server(host, port)
    print(f"Fake Kibana status server running at http://{host}:{port}/api/status?extended")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_server()
