"""
Chain context snapshot for building one transaction.

`fetch_chain_context` reads the head block, genesis hash, runtime version,
the signer's next nonce and (unless already known for this runtime) the
runtime metadata. The snapshot is immutable and belongs to exactly one
transaction: signing a second transaction against the same snapshot reuses
its nonce and the node will reject one of them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import ContextFetchError, RpcError

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ERA_PERIOD = 64
DEFAULT_TIP = 0


@dataclass(frozen=True)
class ChainContext:
    block_hash: str
    block_number: int
    genesis_hash: str
    metadata: str
    nonce: int
    spec_name: str
    spec_version: int
    transaction_version: int
    era_period: int = DEFAULT_ERA_PERIOD
    tip: int = DEFAULT_TIP


def _block_number(value: Any) -> int:
    if isinstance(value, int):
        return value
    s = str(value)
    return int(s, 16) if s.startswith(("0x", "0X")) else int(s)


async def _fetch(method: str, coro: Awaitable[T]) -> T:
    try:
        result = await coro
    except RpcError as e:
        raise ContextFetchError(f"{method} failed: {e}", method=method) from e
    if result is None:
        raise ContextFetchError(f"{method} returned no result", method=method)
    return result


async def fetch_chain_context(
    conn: Any,
    address: str,
    *,
    era_period: int = DEFAULT_ERA_PERIOD,
    tip: int = DEFAULT_TIP,
    known_metadata: Optional[Callable[[str, int], Optional[str]]] = None,
) -> ChainContext:
    """
    Fetch a fresh `ChainContext` for `address`.

    The head hash is read first and every block-dependent query is pinned to
    it, so block number, hash and runtime version describe the same block.
    `known_metadata(spec_name, spec_version)` lets the caller skip the
    metadata download when it already holds it.
    """
    head_hash = await _fetch("chain_getBlockHash", conn.get_block_hash())

    genesis_hash, nonce, runtime, header = await asyncio.gather(
        _fetch("chain_getBlockHash", conn.get_block_hash(0)),
        _fetch("system_accountNextIndex", conn.account_next_index(address)),
        _fetch("state_getRuntimeVersion", conn.get_runtime_version(head_hash)),
        _fetch("chain_getHeader", conn.get_header(head_hash)),
    )

    try:
        spec_name = str(runtime["specName"])
        spec_version = int(runtime["specVersion"])
        transaction_version = int(runtime["transactionVersion"])
        nonce = int(nonce)
        block_number = _block_number(header["number"])
    except (KeyError, TypeError, ValueError) as e:
        raise ContextFetchError(f"malformed chain response: {e}") from e

    metadata = known_metadata(spec_name, spec_version) if known_metadata else None
    if metadata is None:
        metadata = await _fetch("state_getMetadata", conn.get_metadata(head_hash))

    ctx = ChainContext(
        block_hash=head_hash,
        block_number=block_number,
        genesis_hash=genesis_hash,
        metadata=metadata,
        nonce=nonce,
        spec_name=spec_name,
        spec_version=spec_version,
        transaction_version=transaction_version,
        era_period=int(era_period),
        tip=int(tip),
    )
    log.debug(
        "context for %s: block #%d %s nonce=%d spec=%s/%d tx_version=%d",
        address, ctx.block_number, ctx.block_hash, ctx.nonce,
        ctx.spec_name, ctx.spec_version, ctx.transaction_version,
    )
    return ctx


__all__ = ["ChainContext", "fetch_chain_context", "DEFAULT_ERA_PERIOD", "DEFAULT_TIP"]
