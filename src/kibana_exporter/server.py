"""
HTTP front end: a small landing page plus the Prometheus metrics handler.

    kibana-exporter --kibana.uri http://localhost:5601
    curl http://localhost:8080/metrics
"""

from __future__ import annotations

import html
import logging
from typing import List, Tuple
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app

from kibana_exporter.config import ExporterConfig

log = logging.getLogger(__name__)


_LANDING_PAGE = """<html>
<head><title>Kibana Exporter</title></head>
<body>
<h1>Kibana Exporter</h1>
<p><a href='{path}'>Metrics</a></p>
</body>
</html>
"""


def _http_response(start_response, status: str, headers: List[Tuple[str, str]], body: bytes):
    start_response(status, headers)
    return [body]


def create_app(registry: CollectorRegistry, telemetry_path: str = "/metrics"):
    """Build the WSGI app serving `/` and the telemetry path."""
    metrics_app = make_wsgi_app(registry)
    landing = _LANDING_PAGE.format(path=html.escape(telemetry_path, quote=True)).encode("utf-8")

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "/")

        if path == telemetry_path:
            return metrics_app(environ, start_response)

        if path == "/":
            return _http_response(
                start_response,
                "200 OK",
                [("Content-Type", "text/html; charset=utf-8")],
                landing,
            )

        return _http_response(
            start_response,
            "404 Not Found",
            [("Content-Type", "text/plain; charset=utf-8")],
            b"not found\n",
        )

    return app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Handle each pull in its own thread; the exporter lock serializes scrapes."""

    daemon_threads = True


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)


def serve(config: ExporterConfig, registry: CollectorRegistry):
    """Serve until interrupted."""
    host, port = config.listen_host_port()
    app = create_app(registry, config.telemetry_path)
    server = make_server(
        host, port, app,
        server_class=_ThreadingWSGIServer,
        handler_class=_QuietHandler,
    )

    log.info("starting metrics server at %s", config.listen_address)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    log.info("metrics server stopped")
