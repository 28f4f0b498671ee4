"""
polymesh_tx.tx.send
===================

Submit a serialized extrinsic to the node.

`submit` makes exactly one `author_submitExtrinsic` call. Submission is not
idempotent from the caller's point of view, so it is never retried: a dropped
connection after the send leaves the outcome unknown, and the result says so
(`failure.transport`). Node rejections (bad signature, stale nonce, pool
errors) come back as a `SubmissionFailure` carrying the node's code and
message.

    result = await submit(conn, serialized)
    if not result.ok:
        log.warning("rejected: %s", result.failure)
    tx_hash = result.unwrap()     # raises SubmissionFailure on failure
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import RpcError, SubmissionFailure
from ..utils.bytes import normalize_hex

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    transaction_hash: Optional[str] = None
    failure: Optional[SubmissionFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.transaction_hash is not None

    def unwrap(self) -> str:
        if self.failure is not None:
            raise self.failure
        if self.transaction_hash is None:
            raise SubmissionFailure("node returned no transaction hash")
        return self.transaction_hash


async def submit(conn: Any, serialized: str) -> SubmissionResult:
    try:
        result = await conn.submit_extrinsic(serialized)
    except RpcError as e:
        failure = SubmissionFailure(
            message=e.message,
            code=None if e.is_transport else e.code,
            data=e.data,
            transport=e.is_transport,
        )
        if e.is_pool_rejection:
            log.warning("transaction pool rejected extrinsic: %s", failure)
        else:
            log.warning("submission failed: %s", failure)
        return SubmissionResult(failure=failure)

    try:
        tx_hash = normalize_hex(result, 32)
    except (TypeError, ValueError):
        failure = SubmissionFailure(f"unexpected submission result: {result!r}")
        log.warning("submission failed: %s", failure)
        return SubmissionResult(failure=failure)

    log.info("submitted extrinsic %s", tx_hash)
    return SubmissionResult(transaction_hash=tx_hash)


__all__ = ["SubmissionResult", "submit"]
