"""
JSON-RPC 2.0 framing shared by the HTTP and WebSocket transports.

Substrate nodes take positional params only, so a mapping or a scalar is
wrapped the same way on both transports. Request ids start at the current
time in milliseconds, which keeps ids from two clients in one log apart.
"""

from __future__ import annotations

import json
import random
import time
from itertools import count
from typing import Any, Iterator, Mapping, Optional, Sequence, Union

from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]


def id_counter() -> Iterator[int]:
    return count(start=int(time.time() * 1000))


def backoff_delay(attempt: int, *, base: float, factor: float, jitter: float) -> float:
    """Delay before retry number `attempt` (1-based): exponential plus uniform jitter."""
    return base * factor ** max(attempt - 1, 0) + random.uniform(0, jitter)


def _positional(params: Params) -> Union[list, dict]:
    if params is None:
        return []
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, (str, bytes, bytearray)) or not isinstance(params, Sequence):
        return [params]
    return list(params)


def encode_request(method: str, params: Params, request_id: Union[int, str]) -> str:
    frame = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": _positional(params)}
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def unwrap_response(resp: Any, *, method: Optional[str] = None) -> JSON:
    """Return `result` from a response frame, raising RpcError for errors or bad frames."""
    if not isinstance(resp, dict):
        raise RpcError(
            code=JsonRpcCode.INTERNAL_ERROR,
            message="response is not a JSON object",
            data=type(resp).__name__,
            method=method,
        )
    if resp.get("error") is not None:
        raise from_jsonrpc_error(resp["error"], method=method, request_id=resp.get("id"))
    if "result" not in resp:
        raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="response has no result", data=resp, method=method)
    return resp["result"]


def transport_error(message: str, *, method: Optional[str] = None, cause: Any = None, **extra: Any) -> RpcError:
    return RpcError(
        code=JsonRpcCode.TRANSPORT_ERROR,
        message=message,
        data=None if cause is None else str(cause),
        method=method,
        **extra,
    )


__all__ = [
    "JSON",
    "Params",
    "backoff_delay",
    "encode_request",
    "id_counter",
    "transport_error",
    "unwrap_response",
]
