"""
polymesh_tx.tx.build
====================

Assemble unsigned Polymesh extrinsics.

`build_unsigned` is the pure part: given a call descriptor, its arguments, the
signer's address, a `ChainContext` and a `Registry`, it encodes the call and
fixes every field the signing payload commits to. `TransactionAssembler` adds
the I/O: it fetches a fresh context over the shared connection and builds (or
reuses) the registry for the runtime it finds.

Examples
--------
    from polymesh_tx.calls import get_call
    from polymesh_tx.tx.build import TransactionAssembler

    assembler = TransactionAssembler(conn, registries=RegistryCache(cfg.chain_properties()))
    unsigned = await assembler.assemble(
        get_call("Identity", "join_identity_as_key"), [auth_id], signer_address,
    )
    registry = assembler.registry_for(unsigned)

    # Later:
    # serialized = sign(unsigned, keypair, registry)
    # result = await submit(conn, serialized)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from ..calls import CallDescriptor, bind_args, require_known
from ..config import PipelineConfig
from ..registry import Registry, RegistryCache
from ..utils.scale import Era
from .context import DEFAULT_ERA_PERIOD, DEFAULT_TIP, ChainContext, fetch_chain_context

log = logging.getLogger(__name__)

EXTRINSIC_VERSION = 4

Args = Union[Sequence[Any], Mapping[str, Any]]


@dataclass(frozen=True)
class UnsignedTransaction:
    """
    Everything the signer commits to, in wire-ready form.

    `method` holds the SCALE-encoded call; `block_hash` is the checkpoint the
    mortal era is anchored at. Never sign two transactions from one instance:
    they would share a nonce.
    """

    address: str
    call: CallDescriptor
    args: Dict[str, Any]
    method: bytes
    era: Era
    nonce: int
    tip: int
    spec_name: str
    spec_version: int
    transaction_version: int
    genesis_hash: str
    block_hash: str
    block_number: int
    version: int = EXTRINSIC_VERSION
    metadata_rpc: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def era_period(self) -> Optional[int]:
        return self.era.period

    @property
    def valid_until(self) -> Optional[int]:
        """First block number at which the node will refuse this transaction."""
        return self.era.death(self.block_number)


def build_unsigned(
    call: CallDescriptor,
    args: Args,
    address: str,
    context: ChainContext,
    registry: Registry,
) -> UnsignedTransaction:
    """
    Build an `UnsignedTransaction` without touching the network.

    Raises:
        UnsupportedCallError: the call is not registered, or the runtime lacks it.
        ValueError / TypeError: arguments do not fit the call.
    """
    known = require_known(call)
    bound = bind_args(known, args)
    method = registry.encode_call(known.pallet, known.method, bound)
    era = Era.mortal(context.era_period, context.block_number)
    return UnsignedTransaction(
        address=address,
        call=known,
        args=bound,
        method=method,
        era=era,
        nonce=context.nonce,
        tip=context.tip,
        spec_name=context.spec_name,
        spec_version=context.spec_version,
        transaction_version=context.transaction_version,
        genesis_hash=context.genesis_hash,
        block_hash=context.block_hash,
        block_number=context.block_number,
        metadata_rpc=context.metadata,
    )


class TransactionAssembler:
    """Fetches chain context and produces unsigned transactions for the signer."""

    def __init__(
        self,
        conn: Any,
        *,
        registries: Optional[RegistryCache] = None,
        era_period: int = DEFAULT_ERA_PERIOD,
        tip: int = DEFAULT_TIP,
    ) -> None:
        self._conn = conn
        self.registries = registries or RegistryCache({"ss58Format": 42})
        self.era_period = era_period
        self.tip = tip
        self._metadata: Dict[tuple, str] = {}
        self._last_registry: Optional[Registry] = None

    @classmethod
    def from_config(cls, conn: Any, cfg: PipelineConfig) -> "TransactionAssembler":
        registries = RegistryCache(
            cfg.chain_properties(),
            chain_name=cfg.chain_name,
            extra_types=cfg.load_extra_types(),
        )
        return cls(conn, registries=registries, era_period=cfg.era_period, tip=cfg.tip)

    @property
    def registry(self) -> Optional[Registry]:
        """
        Registry used by the most recent `assemble` call.

        Every `assemble` overwrites it, so with concurrent assembles it may
        belong to another transaction. Sign and watch with
        `registry_for(unsigned)` instead.
        """
        return self._last_registry

    async def fetch_context(self, address: str) -> ChainContext:
        ctx = await fetch_chain_context(
            self._conn,
            address,
            era_period=self.era_period,
            tip=self.tip,
            known_metadata=lambda name, version: self._metadata.get((name, version)),
        )
        self._metadata[(ctx.spec_name, ctx.spec_version)] = ctx.metadata
        return ctx

    def registry_for_context(self, context: ChainContext) -> Registry:
        return self.registries.get_or_build(
            context.metadata, context.spec_name, context.spec_version
        )

    def registry_for(self, unsigned: UnsignedTransaction) -> Registry:
        """The registry `unsigned` was encoded with (needed by the signer and watcher)."""
        registry = self.registries.get(unsigned.spec_name, unsigned.spec_version)
        if registry is None:
            registry = self.registries.get_or_build(
                unsigned.metadata_rpc or "", unsigned.spec_name, unsigned.spec_version
            )
        return registry

    async def assemble(
        self, call: CallDescriptor, args: Args, signer_address: str
    ) -> UnsignedTransaction:
        """
        Fetch a fresh chain context for `signer_address` and build the unsigned
        transaction for `call(*args)`.

        The call is checked against the call registry before any RPC is made.
        """
        require_known(call)
        context = await self.fetch_context(signer_address)
        registry = self.registry_for_context(context)
        unsigned = build_unsigned(call, args, signer_address, context, registry)
        self._last_registry = registry
        log.info(
            "assembled %s for %s nonce=%d era=%s/%s at block #%d",
            unsigned.call.name, signer_address, unsigned.nonce,
            unsigned.era.period, unsigned.era.phase, unsigned.block_number,
        )
        return unsigned


__all__ = [
    "EXTRINSIC_VERSION",
    "UnsignedTransaction",
    "build_unsigned",
    "TransactionAssembler",
]
