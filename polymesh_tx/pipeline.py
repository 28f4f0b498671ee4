"""
polymesh_tx.pipeline
====================

End-to-end helpers tying the stages together.

- construct_serialized_tx(conn, private_key, call, args) -> str
    Assemble against a fresh chain context, sign offline and return the
    serialized extrinsic. The serialized form, its hash and its decoded form
    are logged at debug level.

- submit_and_watch(conn, serialized, registry) -> TxReport
    Submit once, then watch for inclusion. A rejected submission skips the
    watch and is reported as not found.

`registry` is the one the transaction was encoded with,
`TransactionAssembler.registry_for(unsigned)`.

Examples
--------
    async with ChainConnection.from_config(cfg) as conn:
        assembler = TransactionAssembler.from_config(conn, cfg)
        signer = OfflineSigner.from_private_key(seed_hex)
        unsigned = await assembler.assemble(
            get_call("Identity", "join_identity_as_key"), [auth_id], signer.address,
        )
        registry = assembler.registry_for(unsigned)
        report = await submit_and_watch(conn, signer.sign(unsigned, registry), registry)
        print(report.to_dict())     # {"found": True, "success": True}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .calls import CallDescriptor
from .config import PipelineConfig
from .tx.build import Args, TransactionAssembler
from .tx.encode import decode_extrinsic, tx_hash
from .tx.send import SubmissionResult, submit
from .tx.sign import keypair_from_private_key, sign
from .tx.watch import DEFAULT_TIMEOUT_S, InclusionOutcome, InclusionWatcher
from .utils.bytes import BytesLike

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxReport:
    submission: SubmissionResult
    outcome: Optional[InclusionOutcome] = None

    @property
    def found(self) -> bool:
        return self.outcome is not None and self.outcome.found

    @property
    def success(self) -> bool:
        return self.outcome is not None and self.outcome.success

    def to_dict(self) -> Dict[str, Any]:
        if self.outcome is None:
            failure = self.submission.failure
            return {
                "found": False,
                "success": False,
                "errorInfo": str(failure.message) if failure is not None else "not submitted",
            }
        return self.outcome.to_dict()


async def construct_serialized_tx(
    conn: Any,
    private_key: Union[str, BytesLike],
    call: CallDescriptor,
    args: Args,
    *,
    assembler: Optional[TransactionAssembler] = None,
    config: Optional[PipelineConfig] = None,
) -> str:
    """
    Build and sign `call(*args)` for the account owning `private_key`.

    The chain context is fetched fresh, so each call consumes the account's
    next nonce; serialize calls for the same account.
    """
    cfg = config or PipelineConfig.from_env()
    if assembler is None:
        assembler = TransactionAssembler.from_config(conn, cfg)
    keypair = keypair_from_private_key(
        private_key, ss58_format=cfg.ss58_format, crypto_type=cfg.crypto_type
    )

    unsigned = await assembler.assemble(call, args, keypair.ss58_address)
    registry = assembler.registry_for(unsigned)
    serialized = sign(unsigned, keypair, registry)

    log.debug("serialized tx: %s", serialized)
    log.debug("tx hash: %s", tx_hash(serialized))
    if log.isEnabledFor(logging.DEBUG):
        log.debug("decoded tx: %s", decode_extrinsic(serialized, registry).to_dict())
    return serialized


async def submit_and_watch(
    conn: Any,
    serialized: str,
    registry: Any,
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    poll_interval_s: float = 1.0,
) -> TxReport:
    submission = await submit(conn, serialized)
    if not submission.ok:
        return TxReport(submission=submission)
    watcher = InclusionWatcher(
        conn, registry, timeout_s=timeout_s, poll_interval_s=poll_interval_s
    )
    outcome = await watcher.watch(submission.unwrap())
    return TxReport(submission=submission, outcome=outcome)


__all__ = ["TxReport", "construct_serialized_tx", "submit_and_watch"]
