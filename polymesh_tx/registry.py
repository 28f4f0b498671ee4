"""
polymesh_tx.registry
====================

Runtime type registry built from live chain metadata.

`build_registry` merges scalecodec's base presets with the chain's own type
definitions (see `polymesh_tx.chain_types`), decodes the runtime metadata and
returns a `Registry` that the assembler, signer and watcher share for every
byte-level operation:

- encode call arguments for a (pallet, method) pair;
- decode call bytes back into a readable form, and lay out the signing
  payload and envelope of whole extrinsics (see `polymesh_tx.tx.encode`);
- decode the `System.Events` storage value of a block;
- resolve module-indexed dispatch errors to (pallet, error name).

Metadata rarely changes within a session, so `RegistryCache` keeps one
registry per (spec name, spec version). The chain context (nonce, block) is
still fetched fresh for every transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from scalecodec.base import RuntimeConfigurationObject, ScaleBytes
from scalecodec.type_registry import load_type_registry_preset

from .chain_types import spec_types
from .errors import RegistryBuildError, UnsupportedCallError
from .utils.bytes import ensure_bytes, to_hex

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedCall:
    pallet: str
    method: str
    args: Dict[str, Any] = field(default_factory=dict)
    call_index: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.pallet}.{self.method}"

    @classmethod
    def from_scale(cls, value: Mapping[str, Any]) -> "DecodedCall":
        """From the dict scalecodec's `Call` type decodes to."""
        return cls(
            pallet=value["call_module"],
            method=value["call_function"],
            args={arg["name"]: arg["value"] for arg in value.get("call_args") or []},
            call_index=value.get("call_index"),
        )


class Registry:
    """scalecodec runtime configuration bound to one decoded metadata blob."""

    def __init__(
        self,
        runtime_config: RuntimeConfigurationObject,
        metadata: Any,
        *,
        spec_name: str,
        spec_version: int,
        chain_name: str,
        chain_properties: Mapping[str, Any],
    ) -> None:
        self.runtime_config = runtime_config
        self.metadata = metadata
        self.spec_name = spec_name
        self.spec_version = int(spec_version)
        self.chain_name = chain_name
        self.chain_properties = dict(chain_properties)

    @property
    def ss58_format(self) -> int:
        return int(self.chain_properties.get("ss58Format", 42))

    # ------------- calls -----------------------

    def has_call(self, pallet: str, method: str) -> bool:
        for module in self.metadata.pallets:
            if module.name == pallet and module.calls:
                return any(call.name == method for call in module.calls)
        return False

    def encode_call(self, pallet: str, method: str, args: Mapping[str, Any]) -> bytes:
        if not self.has_call(pallet, method):
            raise UnsupportedCallError(
                pallet, method, f"not present in runtime {self.spec_name}/{self.spec_version}"
            )
        call = self.runtime_config.create_scale_object("Call", metadata=self.metadata)
        try:
            call.encode(
                {"call_module": pallet, "call_function": method, "call_args": dict(args)}
            )
        except (ValueError, TypeError, KeyError) as e:
            raise ValueError(f"cannot encode arguments for {pallet}.{method}: {e}") from e
        return bytes(call.data.data)

    def decode_call(self, data: bytes) -> DecodedCall:
        call = self.runtime_config.create_scale_object(
            "Call", data=ScaleBytes(bytearray(ensure_bytes(data))), metadata=self.metadata
        )
        return DecodedCall.from_scale(call.decode())

    # ------------- events & errors -------------

    def decode_events(self, storage_hex: Optional[str]) -> List[Dict[str, Any]]:
        """Decode the raw `System.Events` storage value into a list of event records."""
        if not storage_hex:
            return []
        pallet = self.metadata.get_metadata_pallet("System")
        storage = pallet.get_storage_function("Events")
        obj = self.runtime_config.create_scale_object(
            type_string=storage.get_value_type_string(),
            data=ScaleBytes(storage_hex),
            metadata=self.metadata,
        )
        obj.decode()
        return list(obj.value or [])

    def resolve_module_error(self, module_index: int, error_index: int) -> Tuple[str, str]:
        pallet_name = f"Pallet{module_index}"
        for module in self.metadata.pallets:
            if module.value.get("index") == module_index:
                pallet_name = module.name
                break
        try:
            error = self.metadata.get_module_error(module_index=module_index, error_index=error_index)
        except IndexError:
            error = None
        if error is None:
            return pallet_name, f"Error{error_index}"
        return pallet_name, error.name


def build_registry(
    chain_properties: Mapping[str, Any],
    metadata: str,
    spec_name: str,
    spec_version: int,
    *,
    chain_name: str = "",
    extra_types: Optional[Mapping[str, Any]] = None,
) -> Registry:
    """
    Build a `Registry` from a chain's properties and its raw runtime metadata (hex).

    Raises:
        RegistryBuildError if the metadata cannot be decoded.
    """
    runtime_config = RuntimeConfigurationObject(
        ss58_format=int(chain_properties.get("ss58Format", 42))
    )
    runtime_config.update_type_registry(load_type_registry_preset("core"))
    runtime_config.update_type_registry(load_type_registry_preset("legacy"))
    runtime_config.update_type_registry(
        {"types": spec_types(spec_name, spec_version, extra_types)}
    )
    runtime_config.set_active_spec_version_id(int(spec_version))

    try:
        decoded = runtime_config.create_scale_object(
            "MetadataVersioned", data=ScaleBytes(to_hex(ensure_bytes(metadata)))
        )
        decoded.decode()
        if decoded.portable_registry:
            runtime_config.add_portable_registry(decoded)
    except Exception as e:
        raise RegistryBuildError(
            f"cannot decode runtime metadata for {spec_name}/{spec_version}: {e}"
        ) from e

    log.debug("built registry for %s spec %s", spec_name, spec_version)
    return Registry(
        runtime_config,
        decoded,
        spec_name=spec_name,
        spec_version=spec_version,
        chain_name=chain_name,
        chain_properties=chain_properties,
    )


class RegistryCache:
    """One registry per (spec name, spec version) for the life of a session."""

    def __init__(
        self,
        chain_properties: Mapping[str, Any],
        *,
        chain_name: str = "",
        extra_types: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.chain_properties = dict(chain_properties)
        self.chain_name = chain_name
        self.extra_types = extra_types
        self._registries: Dict[Tuple[str, int], Registry] = {}

    def get(self, spec_name: str, spec_version: int) -> Optional[Registry]:
        return self._registries.get((spec_name, int(spec_version)))

    def get_or_build(self, metadata: str, spec_name: str, spec_version: int) -> Registry:
        key = (spec_name, int(spec_version))
        registry = self._registries.get(key)
        if registry is None:
            registry = build_registry(
                self.chain_properties,
                metadata,
                spec_name,
                spec_version,
                chain_name=self.chain_name,
                extra_types=self.extra_types,
            )
            self._registries[key] = registry
        return registry

    def put(self, registry: Registry) -> None:
        self._registries[(registry.spec_name, registry.spec_version)] = registry


__all__ = ["DecodedCall", "Registry", "build_registry", "RegistryCache"]
