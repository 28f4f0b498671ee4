"""
polymesh_tx.tx.encode
=====================

Signing payload and signed envelope of version 4 extrinsics, laid out from
the runtime metadata held by a `Registry`.

This module provides:
- `signed_extensions(registry)` → the runtime's signed extensions, in order
- `signing_payload(unsigned, registry)` → bytes the key signs
- `pack_signed(unsigned, registry, ...)` → 0x-hex serialized extrinsic
- `decode_extrinsic(serialized, registry)` → `DecodedExtrinsic`
- `tx_hash(serialized)` → BLAKE2b-256 of the serialized bytes (the hash the node reports)

Signed extensions
-----------------
Metadata lists the runtime's signed extensions in order. Each has an
`extrinsic` part, carried inside the transaction, and an `additional_signed`
part, committed to by the signature only. Either may be empty (CheckWeight
has neither, CheckGenesis only the latter). Both parts are encoded with the
metadata's own types, so a runtime that changes its extension set changes
the bytes here without code changes. An extension with a non-empty part the
signer has no value for raises `UnsupportedExtensionError`.

Layout
------
Signing payload (`ExtrinsicPayloadValue`)::

    call ++ extrinsic parts ++ additional parts

  hashed with BLAKE2b-256 first when longer than 256 bytes.

Signed extrinsic::

    compact(len(body)) ++ body
    body = 0x84 ++ Address(signer) ++ ExtrinsicSignature ++ extrinsic parts ++ call
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from scalecodec.base import ScaleBytes
from scalecodec.types import Enum, Null, Struct, Tuple as ScaleTuple
from scalecodec.utils.ss58 import ss58_decode

from ..errors import UnsupportedExtensionError
from ..registry import DecodedCall
from ..utils.bytes import BytesLike, ensure_bytes, to_hex
from ..utils.hash import blake2_256, blake2_256_hex
from ..utils.scale import Era
from .build import EXTRINSIC_VERSION, UnsignedTransaction

SIGNED_FLAG = 0x80
MAX_PAYLOAD_LEN = 256

# marks an extension part the signer has no value for
_UNSET = object()


class SignatureType(IntEnum):
    """Variant index of the signature in `MultiSignature`."""

    ED25519 = 0
    SR25519 = 1
    ECDSA = 2

    @property
    def signature_len(self) -> int:
        return 65 if self is SignatureType.ECDSA else 64


@dataclass(frozen=True)
class SignedExtension:
    """Type strings of both parts; None where the part encodes to nothing."""

    identifier: str
    extrinsic: Optional[str] = None
    additional: Optional[str] = None


# -----------------------------------------------------------------------------
# Signed extensions
# -----------------------------------------------------------------------------


def _carried_type(registry: Any, type_string: Optional[str]) -> Optional[str]:
    """
    The type actually written for `type_string`, or None if it writes nothing.

    Single-member tuple wrappers (`CheckNonce(Compact<Index>)`) are unwrapped
    so the member's own value can be passed.
    """
    if not type_string:
        return None
    cls = registry.runtime_config.get_decoder_class(type_string)
    if cls is None:
        raise UnsupportedExtensionError(type_string, "type not in the runtime registry")
    if issubclass(cls, Null):
        return None
    if issubclass(cls, (ScaleTuple, Struct)):
        members = list(cls.type_mapping or [])
        if issubclass(cls, Struct):
            members = [member for _name, member in members]
        if issubclass(cls, ScaleTuple) and len(members) == 1:
            return _carried_type(registry, members[0])
        if all(_carried_type(registry, member) is None for member in members):
            return None
    return type_string


def signed_extensions(registry: Any) -> List[SignedExtension]:
    """The runtime's signed extensions in metadata order."""
    out = []
    for identifier, types in registry.metadata.get_signed_extensions().items():
        out.append(
            SignedExtension(
                identifier,
                extrinsic=_carried_type(registry, types.get("extrinsic")),
                additional=_carried_type(registry, types.get("additional_signed")),
            )
        )
    return out


def _extension_values(unsigned: UnsignedTransaction) -> Dict[str, Tuple[Any, Any]]:
    checkpoint = unsigned.genesis_hash if unsigned.era.is_immortal else unsigned.block_hash
    era = unsigned.era.to_scale()
    return {
        "CheckMortality": (era, checkpoint),
        "CheckEra": (era, checkpoint),
        "CheckNonce": (unsigned.nonce, _UNSET),
        "ChargeTransactionPayment": (unsigned.tip, _UNSET),
        "ChargeAssetTxPayment": ({"tip": unsigned.tip, "asset_id": None}, _UNSET),
        "CheckMetadataHash": ({"mode": "Disabled"}, None),
        "CheckSpecVersion": (_UNSET, unsigned.spec_version),
        "CheckTxVersion": (_UNSET, unsigned.transaction_version),
        "CheckGenesis": (_UNSET, unsigned.genesis_hash),
    }


Part = Tuple[str, str, Any]


def extension_parts(unsigned: UnsignedTransaction, registry: Any) -> Tuple[List[Part], List[Part]]:
    """
    (extrinsic parts, additional parts) as (field name, type string, value).

    Raises:
        UnsupportedExtensionError: a non-empty part has no known value.
    """
    values = _extension_values(unsigned)
    extra: List[Part] = []
    additional: List[Part] = []
    for ext in signed_extensions(registry):
        extra_value, additional_value = values.get(ext.identifier, (_UNSET, _UNSET))
        if ext.extrinsic is not None:
            if extra_value is _UNSET:
                raise UnsupportedExtensionError(ext.identifier, "carries a value the signer cannot supply")
            extra.append((ext.identifier, ext.extrinsic, extra_value))
        if ext.additional is not None:
            if additional_value is _UNSET:
                raise UnsupportedExtensionError(ext.identifier, "signs a value the signer cannot supply")
            additional.append((f"{ext.identifier}.additional", ext.additional, additional_value))
    return extra, additional


def _encode_struct(registry: Any, type_string: str, parts: List[Part]) -> bytes:
    obj = registry.runtime_config.create_scale_object(
        type_string,
        type_mapping=[[name, type_] for name, type_, _value in parts],
        metadata=registry.metadata,
    )
    return bytes(obj.encode({name: value for name, _type, value in parts}).data)


# -----------------------------------------------------------------------------
# Signing payload
# -----------------------------------------------------------------------------


def signing_payload(unsigned: UnsignedTransaction, registry: Any) -> bytes:
    extra, additional = extension_parts(unsigned, registry)
    parts = [("call", "CallBytes", to_hex(unsigned.method))] + extra + additional
    payload = _encode_struct(registry, "ExtrinsicPayloadValue", parts)
    if len(payload) > MAX_PAYLOAD_LEN:
        return blake2_256(payload)
    return payload


# -----------------------------------------------------------------------------
# Envelope
# -----------------------------------------------------------------------------


def _signature_value(registry: Any, sig_type: SignatureType, signature: bytes) -> Any:
    sig_cls = registry.runtime_config.get_decoder_class("ExtrinsicSignature")
    if sig_cls is not None and issubclass(sig_cls, Enum) and sig_cls.type_mapping:
        return {sig_cls.type_mapping[int(sig_type)][0]: to_hex(signature)}
    return to_hex(signature)


def pack_signed(
    unsigned: UnsignedTransaction,
    registry: Any,
    *,
    public_key: BytesLike,
    signature: BytesLike,
    signature_type: Union[SignatureType, int],
) -> str:
    sig_type = SignatureType(int(signature_type))
    public_key = ensure_bytes(public_key, 32, what="public key")
    signature = bytes(signature)
    if len(signature) != sig_type.signature_len:
        raise ValueError(
            f"{sig_type.name.lower()} signature must be {sig_type.signature_len} bytes, "
            f"got {len(signature)}"
        )
    extra, _additional = extension_parts(unsigned, registry)
    parts = (
        [
            ("address", "Address", to_hex(public_key)),
            ("signature", "ExtrinsicSignature", _signature_value(registry, sig_type, signature)),
        ]
        + extra
        + [("call", "CallBytes", to_hex(unsigned.method))]
    )
    body = bytes([SIGNED_FLAG | unsigned.version]) + _encode_struct(registry, "Struct", parts)
    length = registry.runtime_config.create_scale_object("Compact<u32>").encode(len(body))
    return to_hex(bytes(length.data) + body)


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodedExtrinsic:
    version: int
    signed: bool
    method: bytes
    call: Optional[DecodedCall] = None
    signer: Optional[bytes] = None
    address: Optional[str] = None
    signature_type: Optional[SignatureType] = None
    signature: Optional[bytes] = None
    era: Era = field(default_factory=Era)
    nonce: int = 0
    tip: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "signed": self.signed,
            "method": to_hex(self.method),
        }
        if self.signed:
            out.update(
                {
                    "signer": to_hex(self.signer or b""),
                    "address": self.address,
                    "signatureType": self.signature_type.name.lower() if self.signature_type is not None else None,
                    "signature": to_hex(self.signature or b""),
                    "era": {"period": self.era.period, "phase": self.era.phase},
                    "nonce": self.nonce,
                    "tip": self.tip,
                }
            )
        if self.call is not None:
            out["call"] = {
                "pallet": self.call.pallet,
                "method": self.call.method,
                "args": self.call.args,
            }
        return out


def _signer(address: Any) -> bytes:
    if isinstance(address, str):
        if address.startswith("0x"):
            return ensure_bytes(address, 32, what="signer")
        return bytes.fromhex(ss58_decode(address))
    raise ValueError(f"only account-id signers are supported, got {address!r}")


def _signature(value: Any) -> Tuple[SignatureType, bytes]:
    if isinstance(value, Mapping) and len(value) == 1:
        name, sig = next(iter(value.items()))
        try:
            return SignatureType[str(name).upper()], ensure_bytes(sig)
        except KeyError:
            raise ValueError(f"unsupported signature scheme {name!r}") from None
    if isinstance(value, str):
        return SignatureType.SR25519, ensure_bytes(value)
    raise ValueError(f"cannot read signature from {value!r}")


def decode_extrinsic(serialized: Union[str, BytesLike], registry: Any) -> DecodedExtrinsic:
    """
    Parse a serialized extrinsic back into its fields, call included.

    The signer is rendered as an SS58 address in the registry's format.
    """
    raw = ensure_bytes(serialized)
    prefix = registry.runtime_config.create_scale_object("Compact<u32>", data=ScaleBytes(bytearray(raw)))
    try:
        length = prefix.decode(check_remaining=False)
    except Exception as e:
        raise ValueError(f"cannot read extrinsic length: {e}") from e
    pos = prefix.data.offset
    if len(raw) - pos != length:
        raise ValueError(f"length prefix says {length} bytes, found {len(raw) - pos}")
    version = raw[pos] & 0x7F if pos < len(raw) else None
    if version != EXTRINSIC_VERSION:
        raise ValueError(f"unsupported extrinsic version {version}")

    extrinsic = registry.runtime_config.create_scale_object(
        "Extrinsic", data=ScaleBytes(bytearray(raw)), metadata=registry.metadata
    )
    try:
        value = extrinsic.decode()
        method = bytes(extrinsic.value_object["call"].get_used_bytes())
    except Exception as e:
        raise ValueError(f"cannot decode extrinsic: {e}") from e
    call = DecodedCall.from_scale(value["call"])

    if not extrinsic.signed:
        return DecodedExtrinsic(version=version, signed=False, method=method, call=call)

    sig_type, signature = _signature(value.get("signature"))
    signer = _signer(value.get("address"))
    return DecodedExtrinsic(
        version=version,
        signed=True,
        method=method,
        call=call,
        signer=signer,
        address=value["address"] if not value["address"].startswith("0x") else None,
        signature_type=sig_type,
        signature=signature,
        era=Era.from_scale(value.get("era")),
        nonce=int(value.get("nonce") or 0),
        tip=int(value.get("tip") or 0),
    )


def tx_hash(serialized: Union[str, BytesLike]) -> str:
    """0x-hex BLAKE2b-256 of the serialized extrinsic."""
    return blake2_256_hex(ensure_bytes(serialized))


__all__ = [
    "SignatureType",
    "SignedExtension",
    "signed_extensions",
    "extension_parts",
    "signing_payload",
    "pack_signed",
    "DecodedExtrinsic",
    "decode_extrinsic",
    "tx_hash",
]
