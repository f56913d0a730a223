"""SSLKEEPER: keep Alibaba Cloud edge-service TLS certificates current."""

__version__ = "1.0.0"
