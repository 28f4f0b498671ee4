"""
Typed error classes for the transaction pipeline.

Raised by rpc/*, registry, tx/context and tx/watch so callers can catch
specific failure modes while still being able to catch the base
`PolymeshTxError`.

Two families:
  - pipeline errors (RPC, metadata, context, unsupported call, timeout): the
    current operation failed and nothing was learned about the chain;
  - `ExtrinsicFailedOnChain`: the pipeline worked and observed the runtime
    rejecting the call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

__all__ = [
    "PolymeshTxError",
    "RpcError",
    "JsonRpcCode",
    "RegistryBuildError",
    "ContextFetchError",
    "UnsupportedCallError",
    "UnsupportedExtensionError",
    "SubmissionFailure",
    "WatchTimeoutError",
    "ExtrinsicFailedOnChain",
    "from_jsonrpc_error",
]


class PolymeshTxError(Exception):
    """Base class for all pipeline errors."""


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0 standard codes
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (implementation-defined range: -32099 to -32000)
    SERVER_ERROR = -32000

    # Substrate author_* pool errors
    POOL_INVALID_TX = 1010
    POOL_UNKNOWN_VALIDITY = 1011
    POOL_TEMPORARILY_BANNED = 1012
    POOL_ALREADY_IMPORTED = 1013
    POOL_TOO_LOW_PRIORITY = 1014

    # Client side: transport dropped or never connected
    TRANSPORT_ERROR = -32098


_KNOWN_CODES = {c.value: c for c in JsonRpcCode}


@dataclass(eq=False)
class RpcError(PolymeshTxError):
    """Raised when a JSON-RPC call returns an error object or the transport fails."""

    code: int
    message: str
    data: Optional[Any] = None
    method: Optional[str] = None
    request_id: Optional[Any] = None

    def __str__(self) -> str:
        text = f"{self.method or 'rpc'} failed ({self.code}): {self.message}"
        if self.data is not None:
            text += f" [{self.data}]"
        return text

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        """The code as a known `JsonRpcCode`, or None for node-specific codes."""
        return _KNOWN_CODES.get(self.code)

    @property
    def is_transport(self) -> bool:
        return self.code == JsonRpcCode.TRANSPORT_ERROR

    @property
    def is_pool_rejection(self) -> bool:
        """The transaction pool refused the extrinsic (codes 1010-1014)."""
        return JsonRpcCode.POOL_INVALID_TX <= self.code <= JsonRpcCode.POOL_TOO_LOW_PRIORITY


class RegistryBuildError(PolymeshTxError):
    """Runtime metadata could not be decoded into a type registry."""


class ContextFetchError(PolymeshTxError):
    """A chain query needed to build the transaction context failed."""

    def __init__(self, message: str, *, method: Optional[str] = None) -> None:
        super().__init__(message)
        self.method = method


class UnsupportedCallError(PolymeshTxError):
    """The (pallet, method) pair is not in the call registry or the runtime."""

    def __init__(self, pallet: str, method: str, reason: str = "unknown call") -> None:
        super().__init__(f"{pallet}.{method}: {reason}")
        self.pallet = pallet
        self.method = method


class UnsupportedExtensionError(PolymeshTxError):
    """The runtime declares a signed extension the signer cannot fill in."""

    def __init__(self, identifier: str, reason: str = "unknown signed extension") -> None:
        super().__init__(f"{identifier}: {reason}")
        self.identifier = identifier


@dataclass(eq=False)
class SubmissionFailure(PolymeshTxError):
    """
    The node rejected the extrinsic or the transport failed during submission.

    Returned inside `SubmissionResult`; it is only raised when the caller asks
    for it (`SubmissionResult.unwrap()`).
    """

    message: str
    code: Optional[int] = None
    data: Optional[Any] = None
    transport: bool = False

    def __str__(self) -> str:  # pragma: no cover - trivial
        code = f" code={self.code}" if self.code is not None else ""
        kind = "transport" if self.transport else "rejected"
        return f"SubmissionFailure[{kind}]{code}: {self.message}"


class WatchTimeoutError(PolymeshTxError):
    """
    The transaction was not observed in any block before the deadline.

    The outcome is unknown: the extrinsic may still be pending, dropped, or
    included in a block the watcher never saw.
    """

    def __init__(self, tx_hash: str, timeout_s: float) -> None:
        super().__init__(
            f"transaction {tx_hash} was not found on chain within {timeout_s:.1f}s"
        )
        self.tx_hash = tx_hash
        self.timeout_s = timeout_s


class ExtrinsicFailedOnChain(PolymeshTxError):
    """The extrinsic was included but the runtime rejected the call."""

    def __init__(
        self,
        tx_hash: str,
        error_info: str,
        *,
        block_hash: Optional[str] = None,
    ) -> None:
        super().__init__(f"transaction {tx_hash} failed on chain: {error_info}")
        self.tx_hash = tx_hash
        self.error_info = error_info
        self.block_hash = block_hash


def from_jsonrpc_error(
    err_obj: Any,
    *,
    method: Optional[str] = None,
    request_id: Optional[Any] = None,
) -> RpcError:
    """
    Build an RpcError from the `error` member of a response frame.

    Some proxies put a bare string there instead of {"code", "message", "data"};
    that becomes a SERVER_ERROR with the string as message.
    """
    if not isinstance(err_obj, dict):
        return RpcError(JsonRpcCode.SERVER_ERROR, str(err_obj), method=method, request_id=request_id)
    try:
        code = int(err_obj.get("code", JsonRpcCode.SERVER_ERROR))
    except (TypeError, ValueError):
        code = JsonRpcCode.SERVER_ERROR
    return RpcError(
        code,
        str(err_obj.get("message") or "unknown JSON-RPC error"),
        data=err_obj.get("data"),
        method=method,
        request_id=request_id,
    )
