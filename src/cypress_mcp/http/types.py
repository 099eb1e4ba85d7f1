"""Semantic types for HTTP configuration."""

from typing import NewType

Host = NewType("Host", str)
"""Network host address (IP or hostname)."""

Port = NewType("Port", int)
"""Network port number (1-65535)."""
