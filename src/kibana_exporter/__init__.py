"""Kibana exporter - republishes Kibana status as Prometheus metrics."""

__version__ = "0.1.0"
