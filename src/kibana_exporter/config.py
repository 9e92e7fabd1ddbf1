"""
Startup configuration for the exporter.

Built once from CLI flags (or the environment) and handed to the fetcher
and the HTTP server. Never mutated after construction.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Optional, Tuple

from kibana_exporter.errors import ConfigError


DEFAULT_LISTEN_ADDRESS = ":8080"
DEFAULT_TELEMETRY_PATH = "/metrics"
DEFAULT_TIMEOUT_SECONDS = 10.0
NAMESPACE = "kibana"


@dataclass(frozen=True)
class ExporterConfig:
    kibana_uri: str
    username: Optional[str] = None
    password: Optional[str] = None
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    telemetry_path: str = DEFAULT_TELEMETRY_PATH
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    namespace: str = NAMESPACE

    @classmethod
    def create(
        cls,
        kibana_uri: Optional[str],
        username: Optional[str] = None,
        password: Optional[str] = None,
        listen_address: str = DEFAULT_LISTEN_ADDRESS,
        telemetry_path: str = DEFAULT_TELEMETRY_PATH,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        namespace: str = NAMESPACE,
    ) -> "ExporterConfig":
        """Validate raw flag values and build the config.

        Raises ConfigError when the Kibana URI is missing or another value
        can't be used.
        """
        if not kibana_uri or not kibana_uri.strip():
            raise ConfigError("required flag --kibana.uri not provided, aborting")
        if not telemetry_path.startswith("/"):
            raise ConfigError(f"telemetry path must start with '/': {telemetry_path!r}")
        if timeout_seconds <= 0:
            raise ConfigError(f"timeout must be positive, got {timeout_seconds}")

        return cls(
            kibana_uri=kibana_uri.strip().rstrip("/"),
            username=username or None,
            password=password or None,
            listen_address=listen_address,
            telemetry_path=telemetry_path,
            timeout_seconds=timeout_seconds,
            namespace=namespace,
        )

    @property
    def authenticated(self) -> bool:
        return bool(self.username and self.password)

    @property
    def auth_header(self) -> Optional[str]:
        """Value for the Authorization header, or None when unauthenticated."""
        if not self.authenticated:
            return None
        creds = f"{self.username}:{self.password}".encode("utf-8")
        return "Basic " + base64.b64encode(creds).decode("ascii")

    def listen_host_port(self) -> Tuple[str, int]:
        """Split ":8080" / "127.0.0.1:9000" into (host, port)."""
        host, sep, port = self.listen_address.rpartition(":")
        if not sep:
            raise ConfigError(f"listen address needs a port: {self.listen_address!r}")
        try:
            port_num = int(port)
        except ValueError:
            raise ConfigError(f"invalid port in listen address: {self.listen_address!r}") from None
        return host.strip("[]") or "0.0.0.0", port_num
