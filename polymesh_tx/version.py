"""
Version helpers for polymesh-tx.
We keep a static __version__ (PEP 440) and expose the user agent string the
RPC transports send to the node.
"""

from __future__ import annotations

# Bump this when publishing
__version__ = "0.1.0"


def user_agent() -> str:
    """User-Agent header value, e.g. 'polymesh-tx-python/0.1.0'."""
    return f"polymesh-tx-python/{__version__}"


__all__ = ["__version__", "user_agent"]
