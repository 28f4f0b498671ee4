"""
polymesh_tx.tx.sign
===================

Offline signing. Nothing here touches the network.

Keys are `substrateinterface.Keypair` objects (sr25519 by default, ed25519
on request). A raw 32-byte seed can be passed instead of a keypair; it is
turned into one with `keypair_from_private_key`.

    keypair = keypair_from_private_key(os.environ["POLYMESH_SEED"])
    serialized = sign(unsigned, keypair, registry)
    assert verify(serialized, unsigned, registry)
"""

from __future__ import annotations

import logging
from typing import Any, Union

from substrateinterface import Keypair, KeypairType

from ..utils.bytes import BytesLike, ensure_bytes, to_hex
from .build import UnsignedTransaction
from .encode import SignatureType, decode_extrinsic, pack_signed, signing_payload

log = logging.getLogger(__name__)

_KEYPAIR_TYPES = {
    "sr25519": KeypairType.SR25519,
    "ed25519": KeypairType.ED25519,
}

KeyLike = Union[Keypair, str, BytesLike]


def keypair_from_private_key(
    private_key: Union[str, BytesLike],
    *,
    ss58_format: int = 42,
    crypto_type: str = "sr25519",
) -> Keypair:
    """Build a keypair from a 32-byte seed given as bytes or 0x-hex."""
    seed = ensure_bytes(private_key, 32, what="private key seed")
    try:
        kind = _KEYPAIR_TYPES[crypto_type.lower()]
    except KeyError:
        raise ValueError(f"unsupported crypto type {crypto_type!r}") from None
    return Keypair.create_from_seed(to_hex(seed), ss58_format=ss58_format, crypto_type=kind)


def _as_keypair(key: KeyLike, ss58_format: int) -> Keypair:
    if isinstance(key, Keypair):
        return key
    return keypair_from_private_key(key, ss58_format=ss58_format)


def _same_account(keypair: Keypair, address: str) -> bool:
    try:
        return Keypair(ss58_address=address).public_key == keypair.public_key
    except ValueError:
        return False


def sign(unsigned: UnsignedTransaction, key: KeyLike, registry: Any) -> str:
    """
    Sign `unsigned` with `key` and return the serialized extrinsic (0x-hex).

    `registry` must be the one `unsigned` was encoded with
    (`TransactionAssembler.registry_for(unsigned)`): its metadata decides
    which signed extensions the payload and envelope carry.

    The key must belong to `unsigned.address`: the nonce in the transaction is
    that account's, so any other signer would produce a transaction the node
    rejects.
    """
    keypair = _as_keypair(key, registry.ss58_format)
    if not _same_account(keypair, unsigned.address):
        raise ValueError(
            f"signing key {keypair.ss58_address} does not match transaction signer {unsigned.address}"
        )

    payload = signing_payload(unsigned, registry)
    signature = keypair.sign(payload)
    serialized = pack_signed(
        unsigned,
        registry,
        public_key=keypair.public_key,
        signature=signature,
        signature_type=SignatureType(keypair.crypto_type),
    )
    log.debug("signed %s nonce=%d for %s", unsigned.call.name, unsigned.nonce, unsigned.address)
    return serialized


def verify(serialized: str, unsigned: UnsignedTransaction, registry: Any) -> bool:
    """
    Check that `serialized` carries `unsigned`'s call and extensions and that
    its signature is valid over the payload they produce.
    """
    decoded = decode_extrinsic(serialized, registry)
    if not decoded.signed:
        return False
    if (
        decoded.method != unsigned.method
        or decoded.era != unsigned.era
        or decoded.nonce != unsigned.nonce
        or decoded.tip != unsigned.tip
    ):
        return False
    public = Keypair(
        public_key=decoded.signer,
        ss58_format=registry.ss58_format,
        crypto_type=int(decoded.signature_type),
    )
    return bool(public.verify(signing_payload(unsigned, registry), decoded.signature))


class OfflineSigner:
    """A keypair bound to its address, for callers that sign many transactions."""

    def __init__(self, keypair: Keypair) -> None:
        self.keypair = keypair

    @classmethod
    def from_private_key(
        cls,
        private_key: Union[str, BytesLike],
        *,
        ss58_format: int = 42,
        crypto_type: str = "sr25519",
    ) -> "OfflineSigner":
        return cls(
            keypair_from_private_key(private_key, ss58_format=ss58_format, crypto_type=crypto_type)
        )

    @property
    def address(self) -> str:
        return self.keypair.ss58_address

    @property
    def public_key(self) -> bytes:
        return self.keypair.public_key

    def sign(self, unsigned: UnsignedTransaction, registry: Any) -> str:
        return sign(unsigned, self.keypair, registry)


__all__ = ["keypair_from_private_key", "sign", "verify", "OfflineSigner"]
