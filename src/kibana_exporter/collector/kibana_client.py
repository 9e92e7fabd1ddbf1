"""
Fetcher for a live Kibana instance. Hits /api/status?extended once per
call and decodes the JSON into a StatusSnapshot.

One httpx.Client is kept for the fetcher's lifetime so scrapes reuse the
pooled connection instead of reconnecting every time. No retries and no
caching: each scrape is a fresh round-trip.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import httpx

from kibana_exporter.collector.base import StatusSource
from kibana_exporter.config import ExporterConfig
from kibana_exporter.errors import (
    BodyReadError,
    DecodeError,
    RequestBuildError,
    TransportError,
    UpstreamStatusError,
)
from kibana_exporter.metrics import StatusSnapshot

log = logging.getLogger(__name__)

STATUS_PATH = "/api/status?extended"


class KibanaFetcher(StatusSource):

    def __init__(
        self,
        config: ExporterConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._status_url = config.kibana_uri.rstrip("/") + STATUS_PATH

        self._headers = {"Accept": "application/json"}
        # Encoded once here, not per request
        auth_header = config.auth_header
        if auth_header:
            log.info("using authenticated requests with Kibana")
            self._headers["Authorization"] = auth_header
        else:
            log.info("Kibana username or password is not provided, assuming unauthenticated communication")

        self._client = httpx.Client(timeout=config.timeout_seconds, transport=transport)

    @property
    def status_url(self) -> str:
        return self._status_url

    def scrape(self) -> StatusSnapshot:
        """GET the status endpoint and decode it.

        Raises one of the ScrapeError subclasses; the response is closed
        on every path out of here.
        """
        try:
            request = self._client.build_request("GET", self._status_url, headers=self._headers)
        except httpx.InvalidURL as e:
            raise RequestBuildError(f"could not initialize a request to scrape metrics: {e}", e) from e

        try:
            response = self._client.send(request, stream=True)
        except httpx.UnsupportedProtocol as e:
            raise RequestBuildError(f"could not initialize a request to scrape metrics: {e}", e) from e
        except httpx.RequestError as e:
            raise TransportError(f"error while reading Kibana status: {e}", e) from e

        try:
            if not response.is_success:
                raise UpstreamStatusError(
                    f"invalid response from Kibana status: {response.status_code} {response.reason_phrase}",
                    response.status_code,
                )

            try:
                body = response.read()
            except (httpx.HTTPError, httpx.StreamError) as e:
                raise BodyReadError(f"error while reading response from Kibana status: {e}", e) from e
        finally:
            response.close()

        try:
            snapshot = StatusSnapshot.from_dict(json.loads(body))
        except (ValueError, TypeError, RecursionError) as e:
            raise DecodeError(f"error while unmarshalling Kibana status: {e}", body, e) from e

        log.debug("Scraped %s: state=%s", self._status_url, snapshot.overall_state)
        return snapshot

    def name(self) -> str:
        return f"Kibana ({self._status_url})"

    def close(self):
        self._client.close()
