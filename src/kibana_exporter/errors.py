"""
Error types raised by the exporter.

Scrape errors never escape a collection cycle -- the exporter logs them
and emits nothing for that cycle. ConfigError is the only one that
stops the process, and only at startup.
"""

from __future__ import annotations

from typing import Optional


class ExporterError(Exception):
    """Base class for everything the exporter raises."""


class ConfigError(ExporterError):
    """Invalid or missing startup configuration."""


class ScrapeError(ExporterError):
    """One scrape of the Kibana status endpoint failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class RequestBuildError(ScrapeError):
    """The request could not be built (bad URL, unsupported scheme)."""


class TransportError(ScrapeError):
    """Connection, timeout or protocol failure while sending."""


class UpstreamStatusError(ScrapeError):

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class BodyReadError(ScrapeError):
    """The response body could not be read to the end."""


class DecodeError(ScrapeError):
    """Body was not valid JSON or didn't match the status document shape."""

    def __init__(self, message: str, body: bytes, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.body = body

    def __str__(self) -> str:
        text = self.body.decode("utf-8", errors="replace")
        return f"{self.message}\nProblematic content:\n{text}"
