"""Sandboxed cloud-drive client speaking to a single storage gateway endpoint."""

__version__ = "0.1.0"
