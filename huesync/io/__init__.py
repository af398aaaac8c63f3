"""
Wire-level protocol implementation.

This module contains the lowest-level communication components:
- HueClient - HTTP requests against one bridge
- Request - A single request, numbered for log correlation
- Response classification (status codes, embedded bridge errors)
- Concurrency gate and connection-reset retry
"""

from .client import HueClient, Request, ClientConst, is_connection_reset, check_embedded_errors

__all__ = [
    "HueClient",
    "Request",
    "ClientConst",
    "is_connection_reset",
    "check_embedded_errors",
]
