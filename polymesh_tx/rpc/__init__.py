"""
polymesh_tx.rpc
---------------

JSON-RPC transports and the shared chain connection.

This package exposes:
- WsClient:        WebSocket client with subscriptions (see .ws)
- HttpClient:      HTTP client, requests only (see .http)
- ChainConnection: the single shared handle the pipeline components use (see .connection)

Import style:

    from polymesh_tx.rpc import ChainConnection
    conn = ChainConnection("wss://testnet-rpc.polymesh.live")
"""

from __future__ import annotations

from .connection import ChainConnection, SubscriptionTransport, Transport
from .http import HttpClient
from .ws import WsClient

__all__ = ["ChainConnection", "HttpClient", "SubscriptionTransport", "Transport", "WsClient"]
